from splitlog import __version__


def _trip(client, headers, **extra):
    payload = {"name": "Porto", "start_date": "2024-05-01", "end_date": "2024-05-03", **extra}
    resp = client.post("/api/trips", json=payload, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_info(client):
    assert client.get("/api/info").json() == {"version": __version__}


class TestTrips:
    def test_requires_authentication(self, client):
        assert client.get("/api/trips").status_code == 401
        assert client.get("/api/trips", headers={"Authorization": "Bearer nope"}).status_code == 401

    def test_create_builds_itinerary(self, client, alice):
        trip = _trip(client, alice)
        assert trip["days"] == 3
        assert trip["currency"] == "USD"

        full = client.get(f"/api/trips/{trip['id']}", headers=alice).json()
        assert [d["dt"] for d in full["days"]] == ["2024-05-01", "2024-05-02", "2024-05-03"]
        assert [d["day_number"] for d in full["days"]] == [1, 2, 3]

    def test_create_rejects_bad_ranges(self, client, alice):
        resp = client.post("/api/trips", json={"name": "x", "end_date": "2024-05-01"}, headers=alice)
        assert resp.status_code == 400
        resp = client.post(
            "/api/trips", json={"name": "x", "start_date": "2024-05-03", "end_date": "2024-05-01"}, headers=alice
        )
        assert resp.status_code == 400

    def test_list_is_scoped_to_participants(self, client, alice, bob, carol):
        mine = _trip(client, alice, emails=["bob@example.com"])
        _trip(client, carol)

        assert [t["id"] for t in client.get("/api/trips", headers=alice).json()] == [mine["id"]]
        assert [t["id"] for t in client.get("/api/trips", headers=bob).json()] == [mine["id"]]

    def test_owner_only_operations(self, client, alice, bob):
        trip = _trip(client, alice, emails=["bob@example.com"])

        assert client.put(f"/api/trips/{trip['id']}", json={"name": "Lisbon"}, headers=bob).status_code == 403
        assert client.delete(f"/api/trips/{trip['id']}", headers=bob).status_code == 403
        assert client.post(f"/api/trips/{trip['id']}/days", headers=bob).status_code == 403

        resp = client.put(f"/api/trips/{trip['id']}/notes", json={"notes": "Bring cash"}, headers=bob)
        assert resp.status_code == 200
        assert resp.json()["notes"] == "Bring cash"

    def test_archived_trip_cannot_be_deleted(self, client, alice):
        trip = _trip(client, alice)
        client.put(f"/api/trips/{trip['id']}", json={"archived": True}, headers=alice)
        assert client.delete(f"/api/trips/{trip['id']}", headers=alice).status_code == 400

        resp = client.put(f"/api/trips/{trip['id']}", json={"archived": False}, headers=alice)
        assert resp.json()["archived"] is False


class TestDayContent:
    def test_day_title_and_checklist(self, client, alice):
        trip = _trip(client, alice)
        day = client.get(f"/api/trips/{trip['id']}", headers=alice).json()["days"][0]
        base = f"/api/trips/{trip['id']}/days/{day['id']}"

        resp = client.put(base, json={"title": "Arrival", "location": "Airport"}, headers=alice)
        assert resp.json()["title"] == "Arrival"
        assert client.put(base, json={"title": None}, headers=alice).json()["title"] == ""

        item = client.post(f"{base}/checklist", json={"text": "Passport"}, headers=alice).json()
        assert item["checked"] is False
        item = client.put(f"{base}/checklist/{item['id']}", json={"checked": True}, headers=alice).json()
        assert item["checked"] is True
        assert client.delete(f"{base}/checklist/{item['id']}", headers=alice).status_code == 200

    def test_day_from_another_trip_rejected(self, client, alice):
        first = _trip(client, alice)
        second = _trip(client, alice)
        foreign_day = client.get(f"/api/trips/{second['id']}", headers=alice).json()["days"][0]["id"]

        resp = client.post(f"/api/trips/{first['id']}/days/{foreign_day}/notes", json={"content": "x"}, headers=alice)
        assert resp.status_code == 400


class TestSharing:
    def test_public_link(self, client, alice):
        trip = _trip(client, alice)
        url = f"/api/trips/{trip['id']}/share"

        assert client.get(url, headers=alice).status_code == 404
        link = client.post(url, headers=alice).json()["url"]
        assert client.post(url, headers=alice).status_code == 409

        token = link.rsplit("/", 1)[-1]
        shared = client.get(f"/api/trips/shared/{token}")
        assert shared.status_code == 200
        assert shared.json()["shared"] is True

        assert client.delete(url, headers=alice).status_code == 200
        assert client.get(f"/api/trips/shared/{token}").status_code == 404


class TestCategories:
    def test_defaults_seeded_on_first_request(self, client, alice):
        categories = client.get("/api/categories", headers=alice).json()
        assert len(categories) == 6
        assert all(c["is_default"] for c in categories)

    def test_crud(self, client, alice, bob):
        category = client.post("/api/categories", json={"name": "Tips", "color": "#ff0000"}, headers=alice).json()
        assert client.post("/api/categories", json={"name": "Tips"}, headers=alice).status_code == 409

        resp = client.put(f"/api/categories/{category['id']}", json={"icon": "coins"}, headers=alice)
        assert resp.json()["icon"] == "coins"
        assert client.put(f"/api/categories/{category['id']}", json={"icon": "x"}, headers=bob).status_code == 404

        assert client.delete(f"/api/categories/{category['id']}", headers=alice).status_code == 200
        assert "Tips" not in [c["name"] for c in client.get("/api/categories", headers=alice).json()]

    def test_deleting_category_keeps_expenses(self, client, alice):
        trip = _trip(client, alice)
        day_id = client.get(f"/api/trips/{trip['id']}", headers=alice).json()["days"][0]["id"]
        category = client.post("/api/categories", json={"name": "Tolls"}, headers=alice).json()
        client.post(
            f"/api/trips/{trip['id']}/days/{day_id}/expenses",
            json={"amount": "4.50", "category_id": category["id"]},
            headers=alice,
        )

        client.delete(f"/api/categories/{category['id']}", headers=alice)
        [expense] = client.get(f"/api/trips/{trip['id']}/expenses", headers=alice).json()
        assert expense["category_id"] is None


class TestUsers:
    def test_profile(self, client, alice):
        me = client.get("/api/users/me", headers=alice).json()
        assert me["email"] == "alice@example.com"
        assert me["name"] == "Alice"

        resp = client.put("/api/users/me", json={"name": "Ali", "email_opt_out": True}, headers=alice)
        assert resp.json()["name"] == "Ali"
        assert resp.json()["email_opt_out"] is True
