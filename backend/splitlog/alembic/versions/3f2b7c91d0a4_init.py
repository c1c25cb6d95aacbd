"""init

Revision ID: 3f2b7c91d0a4
Revises:
Create Date: 2026-09-28 10:12:41.502118

"""

import sqlalchemy as sa
import sqlmodel.sql.sqltypes
from alembic import op

# revision identifiers, used by Alembic.
revision = "3f2b7c91d0a4"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "user",
        sa.Column("email", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("avatar", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("is_guest", sa.Boolean(), nullable=False),
        sa.Column("email_opt_out", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_user")),
    )
    with op.batch_alter_table("user", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_user_email"), ["email"], unique=True)

    op.create_table(
        "category",
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("color", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("icon", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"], ["user.id"], name=op.f("fk_category_user_id_user"), ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_category")),
    )
    with op.batch_alter_table("category", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_category_user_id"), ["user_id"], unique=False)

    op.create_table(
        "trip",
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("description", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("destination", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("currency", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("notes", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("archived", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user.id"], name=op.f("fk_trip_user_id_user"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_trip")),
    )
    with op.batch_alter_table("trip", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_trip_user_id"), ["user_id"], unique=False)

    op.create_table(
        "tripinvite",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("status", sa.Enum("PENDING", "ACCEPTED", "REJECTED", name="invitestatusenum"), nullable=False),
        sa.Column("avatar", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("invited_by", sa.Integer(), nullable=True),
        sa.Column("invited_at", sa.DateTime(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["invited_by"], ["user.id"], name=op.f("fk_tripinvite_invited_by_user"), ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["trip_id"], ["trip.id"], name=op.f("fk_tripinvite_trip_id_trip"), ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tripinvite")),
        sa.UniqueConstraint("trip_id", "email", name="uq_tripinvite_trip_email"),
    )
    with op.batch_alter_table("tripinvite", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_tripinvite_trip_id"), ["trip_id"], unique=False)
        batch_op.create_index("idx_tripinvite_email_status", ["email", "status"], unique=False)

    op.create_table(
        "tripshare",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("token", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], name=op.f("fk_tripshare_trip_id_trip"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tripshare")),
    )
    with op.batch_alter_table("tripshare", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_tripshare_token"), ["token"], unique=True)

    op.create_table(
        "tripday",
        sa.Column("title", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("location", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("day_number", sa.Integer(), nullable=False),
        sa.Column("dt", sa.Date(), nullable=True),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], name=op.f("fk_tripday_trip_id_trip"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tripday")),
    )
    with op.batch_alter_table("tripday", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_tripday_trip_id"), ["trip_id"], unique=False)
        batch_op.create_index("idx_tripday_trip_number", ["trip_id", "day_number"], unique=False)

    op.create_table(
        "daynote",
        sa.Column("content", sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("day_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["created_by"], ["user.id"], name=op.f("fk_daynote_created_by_user"), ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["day_id"], ["tripday.id"], name=op.f("fk_daynote_day_id_tripday"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_daynote")),
    )
    with op.batch_alter_table("daynote", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_daynote_day_id"), ["day_id"], unique=False)

    op.create_table(
        "daychecklistitem",
        sa.Column("text", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("checked", sa.Boolean(), nullable=True),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("day_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["day_id"], ["tripday.id"], name=op.f("fk_daychecklistitem_day_id_tripday"), ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_daychecklistitem")),
    )
    with op.batch_alter_table("daychecklistitem", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_daychecklistitem_day_id"), ["day_id"], unique=False)

    op.create_table(
        "expense",
        sa.Column("description", sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("dt", sa.DateTime(), nullable=False),
        sa.Column("is_shared", sa.Boolean(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.Column("day_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["category_id"], ["category.id"], name=op.f("fk_expense_category_id_category"), ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(
            ["created_by"], ["user.id"], name=op.f("fk_expense_created_by_user"), ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["day_id"], ["tripday.id"], name=op.f("fk_expense_day_id_tripday"), ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.id"], name=op.f("fk_expense_trip_id_trip"), ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_expense")),
    )
    with op.batch_alter_table("expense", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_expense_day_id"), ["day_id"], unique=False)
        batch_op.create_index(batch_op.f("ix_expense_trip_id"), ["trip_id"], unique=False)
        batch_op.create_index("idx_expense_trip_deleted", ["trip_id", "is_deleted"], unique=False)

    for table in ("expensepayer", "expensesplit"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
            sa.Column("participant_id", sa.Integer(), nullable=False),
            sa.Column("expense_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(
                ["expense_id"], ["expense.id"], name=op.f(f"fk_{table}_expense_id_expense"), ondelete="CASCADE"
            ),
            sa.ForeignKeyConstraint(
                ["participant_id"], ["user.id"], name=op.f(f"fk_{table}_participant_id_user"), ondelete="CASCADE"
            ),
            sa.PrimaryKeyConstraint("id", name=op.f(f"pk_{table}")),
        )
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(batch_op.f(f"ix_{table}_expense_id"), ["expense_id"], unique=False)
            batch_op.create_index(batch_op.f(f"ix_{table}_participant_id"), ["participant_id"], unique=False)


def downgrade():
    for table in ("expensesplit", "expensepayer", "expense", "daychecklistitem", "daynote", "tripday"):
        op.drop_table(table)
    op.drop_table("tripshare")
    op.drop_table("tripinvite")
    op.drop_table("trip")
    op.drop_table("category")
    op.drop_table("user")
