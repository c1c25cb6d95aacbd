from decimal import Decimal

from sqlmodel import select

from splitlog.models.models import InviteStatusEnum, Trip, TripInvite, User
from splitlog.security import create_unsubscribe_token
from splitlog.utils import participants
from splitlog.utils.participants import (claim_account, get_trip_roster,
                                         resolve_or_create_participant)


def _trip(client, headers, emails=()):
    resp = client.post("/api/trips", json={"name": "Kyoto", "emails": list(emails)}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["id"]


class TestResolution:
    """Email to participant identity, at most one row per email."""

    def test_resolve_is_idempotent(self, session):
        first = resolve_or_create_participant(session, "Dana@Example.com ", name="Dana")
        second = resolve_or_create_participant(session, "dana@example.com")
        session.commit()

        assert first.id == second.id
        assert first.is_guest
        assert first.name == "Dana"
        assert len(session.exec(select(User).where(User.email == "dana@example.com")).all()) == 1

    def test_existing_user_keeps_its_name(self, session):
        resolve_or_create_participant(session, "erin@example.com", name="Erin")
        user = resolve_or_create_participant(session, "erin@example.com", name="Someone else")
        assert user.name == "Erin"

    def test_concurrent_insert_is_reused(self, session, monkeypatch):
        winner = User(email="gina@example.com", name="Gina", is_guest=True)
        session.add(winner)
        session.commit()

        # First lookup misses, as if another request inserted the row right after it
        real_find = participants._find_user
        calls = []

        def stale_first_lookup(s, email):
            calls.append(email)
            return None if len(calls) == 1 else real_find(s, email)

        monkeypatch.setattr(participants, "_find_user", stale_first_lookup)

        user = resolve_or_create_participant(session, "gina@example.com", name="Other")
        assert user.id == winner.id
        assert user.name == "Gina"
        assert len(session.exec(select(User).where(User.email == "gina@example.com")).all()) == 1

    def test_claim_promotes_guest_and_accepts_invites(self, session):
        owner = claim_account(session, "owner@example.com", "Owner")
        trip = Trip(name="Oslo", user_id=owner.id)
        session.add(trip)
        session.commit()

        guest = resolve_or_create_participant(session, "frank@example.com")
        session.add(TripInvite(trip_id=trip.id, email=guest.email, invited_by=owner.id))
        session.commit()

        member = claim_account(session, "frank@example.com", "Frank")
        assert member.id == guest.id
        assert not member.is_guest
        invite = session.exec(select(TripInvite).where(TripInvite.email == "frank@example.com")).one()
        assert invite.status == InviteStatusEnum.ACCEPTED

        roster = get_trip_roster(session, trip)
        assert [p.email for p in roster] == ["owner@example.com", "frank@example.com"]
        assert roster[0].is_owner
        assert roster[1].kind == "member"


class TestInvitations:
    def test_invite_creates_shadow_participant_and_sends_mail(self, client, alice, sent_mail):
        trip_id = _trip(client, alice)

        resp = client.post(f"/api/trips/{trip_id}/members", json={"email": "Bob@Example.com", "name": "Bob"}, headers=alice)
        assert resp.status_code == 200, resp.text
        participant = resp.json()
        assert participant["kind"] == "guest"
        assert participant["is_guest"] is True
        assert participant["email"] == "bob@example.com"
        assert participant["invite_status"] == "pending"

        assert len(sent_mail) == 1
        assert sent_mail[0].email == "bob@example.com"
        assert sent_mail[0].join_link.endswith(f"/splitlog/{trip_id}")

    def test_duplicate_invite_conflicts(self, client, alice, sent_mail):
        trip_id = _trip(client, alice, emails=["bob@example.com"])
        resp = client.post(f"/api/trips/{trip_id}/members", json={"email": "bob@example.com"}, headers=alice)
        assert resp.status_code == 409
        resp = client.post(f"/api/trips/{trip_id}/members", json={"email": "alice@example.com"}, headers=alice)
        assert resp.status_code == 409
        assert len(sent_mail) == 1

    def test_guest_signing_in_becomes_member(self, client, alice, bob):
        trip_id = _trip(client, alice, emails=["bob@example.com"])
        guest_id = client.get(f"/api/trips/{trip_id}/members", headers=alice).json()[1]["id"]

        me = client.get("/api/users/me", headers=bob).json()
        assert me["id"] == guest_id
        assert me["is_guest"] is False

        assert [t["id"] for t in client.get("/api/trips", headers=bob).json()] == [trip_id]
        members = client.get(f"/api/trips/{trip_id}/members", headers=alice).json()
        assert members[1]["kind"] == "member"

    def test_registered_member_declines(self, client, alice, carol):
        client.get("/api/users/me", headers=carol)
        trip_id = _trip(client, alice, emails=["carol@example.com"])

        invitations = client.get("/api/trips/invitations", headers=carol).json()
        assert [i["id"] for i in invitations] == [trip_id]

        assert client.post(f"/api/trips/{trip_id}/members/decline", headers=carol).status_code == 200
        assert client.post(f"/api/trips/{trip_id}/members/accept", headers=carol).status_code == 409
        assert client.get(f"/api/trips/{trip_id}", headers=carol).status_code == 404
        emails = [m["email"] for m in client.get(f"/api/trips/{trip_id}/members", headers=alice).json()]
        assert emails == ["alice@example.com"]

    def test_reinvite_after_decline(self, client, alice, carol):
        client.get("/api/users/me", headers=carol)
        trip_id = _trip(client, alice, emails=["carol@example.com"])
        client.post(f"/api/trips/{trip_id}/members/decline", headers=carol)

        resp = client.post(f"/api/trips/{trip_id}/members", json={"email": "carol@example.com"}, headers=alice)
        assert resp.status_code == 200
        assert resp.json()["kind"] == "member"
        assert client.post(f"/api/trips/{trip_id}/members/accept", headers=carol).status_code == 200

    def test_removed_member_keeps_ledger_history(self, client, alice):
        trip_id = _trip(client, alice)
        client.post(f"/api/trips/{trip_id}/days", headers=alice)
        day_id = client.get(f"/api/trips/{trip_id}", headers=alice).json()["days"][0]["id"]
        client.post(f"/api/trips/{trip_id}/members", json={"email": "bob@example.com"}, headers=alice)
        client.post(f"/api/trips/{trip_id}/days/{day_id}/expenses", json={"amount": "20"}, headers=alice)

        bob = client.get(f"/api/trips/{trip_id}/members", headers=alice).json()[1]
        assert client.delete(f"/api/trips/{trip_id}/members/{bob['invite_id']}", headers=alice).status_code == 200

        balance = client.get(f"/api/trips/{trip_id}/balance", headers=alice).json()
        by_email = {b["participant"]["email"]: Decimal(b["balance"]) for b in balance["balances"]}
        assert by_email == {"alice@example.com": Decimal("10"), "bob@example.com": Decimal("-10")}


class TestUnsubscribe:
    def test_opted_out_guest_gets_no_more_mail(self, client, alice, sent_mail):
        _trip(client, alice, emails=["bob@example.com"])
        assert len(sent_mail) == 1

        resp = client.get("/api/unsubscribe", params={"token": create_unsubscribe_token("bob@example.com")})
        assert resp.status_code == 200
        assert resp.json() == {"email": "bob@example.com", "unsubscribed": True}

        trip_id = _trip(client, alice)
        resp = client.post(f"/api/trips/{trip_id}/members", json={"email": "bob@example.com"}, headers=alice)
        assert resp.status_code == 200
        assert len(sent_mail) == 1

    def test_unknown_email_creates_no_user(self, client, session):
        resp = client.get("/api/unsubscribe", params={"token": create_unsubscribe_token("nobody@example.com")})
        assert resp.status_code == 200
        assert session.exec(select(User).where(User.email == "nobody@example.com")).all() == []

    def test_access_token_is_not_an_unsubscribe_token(self, client, alice):
        token = alice["Authorization"].split()[1]
        assert client.get("/api/unsubscribe", params={"token": token}).status_code == 400
