"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 12:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Mesma cláusula de ServiceRequest.__table_args__ na data desta revisão
ACTIVE_DUPLICATE_CLAUSE = "status IN ('pending', 'in_progress') AND type <> 'other'"


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("role", sa.Enum("owner", "staff", name="userrole", native_enum=False), nullable=False),
        sa.Column("restaurant_id", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_restaurant_id", "users", ["restaurant_id"])

    op.create_table(
        "restaurants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_restaurants_id", "restaurants", ["id"])
    op.create_index("ix_restaurants_owner_id", "restaurants", ["owner_id"])

    op.create_table(
        "tables",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "restaurant_id", sa.Integer(), sa.ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("qr_code", sa.Text(), nullable=False),
        sa.Column("position", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_tables_id", "tables", ["id"])
    op.create_index("ix_tables_restaurant_id", "tables", ["restaurant_id"])

    op.create_table(
        "table_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("table_id", sa.Integer(), sa.ForeignKey("tables.id", ondelete="CASCADE"), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_reason", sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_table_sessions_id", "table_sessions", ["id"])
    op.create_index("ix_table_sessions_table_id", "table_sessions", ["table_id"])
    op.create_index("ix_table_sessions_session_id", "table_sessions", ["session_id"], unique=True)

    op.create_table(
        "requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("table_id", sa.Integer(), sa.ForeignKey("tables.id", ondelete="CASCADE"), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column(
            "table_session_id",
            sa.Integer(),
            sa.ForeignKey("table_sessions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "type", sa.Enum("waiter", "water", "check", "other", name="requesttype", native_enum=False), nullable=False
        ),
        sa.Column(
            "status",
            sa.Enum("pending", "in_progress", "completed", "cleared", name="requeststatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_requests_id", "requests", ["id"])
    op.create_index("ix_requests_table_id", "requests", ["table_id"])
    op.create_index("ix_requests_session_id", "requests", ["session_id"])
    op.create_index("ix_requests_table_session_id", "requests", ["table_session_id"])
    op.create_index("ix_requests_status", "requests", ["status"])
    op.create_index(
        "uq_requests_active_type",
        "requests",
        ["table_id", "session_id", "type"],
        unique=True,
        sqlite_where=sa.text(ACTIVE_DUPLICATE_CLAUSE),
        postgresql_where=sa.text(ACTIVE_DUPLICATE_CLAUSE),
    )

    op.create_table(
        "feedback",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("request_id", sa.Integer(), sa.ForeignKey("requests.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating"),
    )
    op.create_index("ix_feedback_id", "feedback", ["id"])
    op.create_index("ix_feedback_request_id", "feedback", ["request_id"], unique=True)


def downgrade() -> None:
    op.drop_table("feedback")
    op.drop_table("requests")
    op.drop_table("table_sessions")
    op.drop_table("tables")
    op.drop_table("restaurants")
    op.drop_table("users")
