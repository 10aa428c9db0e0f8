"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for groupvault:
groups, group_members, membership_departures, bans,
join_requests, messages.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

group_kind = sa.Enum("open", "private", name="groupkind")
departure_reason = sa.Enum("left", "banished", name="departurereason")
join_request_status = sa.Enum("pending", "approved", "declined", name="joinrequeststatus")


def upgrade() -> None:
    # --- groups ---
    op.create_table(
        "groups",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("owner_id", sa.Integer, nullable=False),
        sa.Column("kind", group_kind, nullable=False),
        sa.Column("max_members", sa.Integer, nullable=False, server_default="100"),
        sa.Column("wrapped_key", sa.Text, nullable=False),
        sa.Column("wrap_nonce", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_groups_owner_id", "groups", ["owner_id"])

    # --- group_members ---
    op.create_table(
        "group_members",
        sa.Column("group_id", sa.Integer, sa.ForeignKey("groups.id"), primary_key=True),
        sa.Column("user_id", sa.Integer, primary_key=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- membership_departures ---
    op.create_table(
        "membership_departures",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("group_id", sa.Integer, sa.ForeignKey("groups.id"), nullable=False),
        sa.Column("user_id", sa.Integer, nullable=False),
        sa.Column("left_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reason", departure_reason, nullable=False),
    )
    op.create_index(
        "ix_departures_group_user", "membership_departures", ["group_id", "user_id", "left_at"]
    )

    # --- bans ---
    op.create_table(
        "bans",
        sa.Column("group_id", sa.Integer, sa.ForeignKey("groups.id"), primary_key=True),
        sa.Column("user_id", sa.Integer, primary_key=True),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- join_requests ---
    op.create_table(
        "join_requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("group_id", sa.Integer, sa.ForeignKey("groups.id"), nullable=False),
        sa.Column("requester_id", sa.Integer, nullable=False),
        sa.Column("status", join_request_status, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_join_requests_group_id", "join_requests", ["group_id"])

    # --- messages ---
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("group_id", sa.Integer, sa.ForeignKey("groups.id"), nullable=False),
        sa.Column("sender_id", sa.Integer, nullable=False),
        sa.Column("ciphertext", sa.Text, nullable=False),
        sa.Column("nonce", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_messages_group_created", "messages", ["group_id", "created_at", "id"])


def downgrade() -> None:
    op.drop_table("messages")
    op.drop_table("join_requests")
    op.drop_table("bans")
    op.drop_table("membership_departures")
    op.drop_table("group_members")
    op.drop_table("groups")
    join_request_status.drop(op.get_bind(), checkfirst=True)
    departure_reason.drop(op.get_bind(), checkfirst=True)
    group_kind.drop(op.get_bind(), checkfirst=True)
