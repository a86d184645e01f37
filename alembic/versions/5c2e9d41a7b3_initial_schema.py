"""Initial schema: settings, scores, activity log, level roles

Creates the six tables behind XP tracking, decay and level-role sync.

Revision ID: 5c2e9d41a7b3
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = "5c2e9d41a7b3"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "guild_settings",
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("msg_xp", sa.Integer(), server_default="5"),
        sa.Column("reaction_xp", sa.Integer(), server_default="2"),
        sa.Column("voice_xp_per_minute", sa.Integer(), server_default="1"),
        sa.Column("msg_cooldown_seconds", sa.Integer(), server_default="20"),
        sa.Column("reaction_cooldown_seconds", sa.Integer(), server_default="10"),
        sa.Column("decay_enabled", sa.Boolean(), server_default=sa.true()),
        sa.Column("decay_window_days", sa.Integer(), server_default="7"),
        sa.Column("decay_min_messages", sa.Integer(), server_default="20"),
        sa.Column("decay_percent", sa.Float(), server_default="0.1"),
        sa.Column("level_curve_factor", sa.Integer(), server_default="100"),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("guild_id"),
    )

    op.create_table(
        "user_scores",
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("xp", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("guild_id", "user_id"),
    )
    op.create_index("ix_user_scores_guild_xp", "user_scores", ["guild_id", "xp"])

    op.create_table(
        "activity_log",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            autoincrement=True,
            nullable=False,
        ),
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_activity_recent",
        "activity_log",
        ["guild_id", "user_id", "kind", "created_at"],
    )

    op.create_table(
        "level_roles",
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("role_id", sa.BigInteger(), nullable=False),
        sa.Column("required_level", sa.Integer(), nullable=False),
        sa.Column("drop_grace_days", sa.Integer(), nullable=False, server_default="3"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("guild_id", "role_id"),
    )

    op.create_table(
        "role_drop_state",
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("role_id", sa.BigInteger(), nullable=False),
        sa.Column("below_since", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("guild_id", "user_id", "role_id"),
    )
    op.create_index(
        "ix_role_drop_state_guild_role", "role_drop_state", ["guild_id", "role_id"]
    )

    op.create_table(
        "allowed_command_channels",
        sa.Column("guild_id", sa.BigInteger(), nullable=False),
        sa.Column("channel_id", sa.BigInteger(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now()
        ),
        sa.PrimaryKeyConstraint("guild_id", "channel_id"),
    )


def downgrade() -> None:
    op.drop_table("allowed_command_channels")
    op.drop_index("ix_role_drop_state_guild_role", table_name="role_drop_state")
    op.drop_table("role_drop_state")
    op.drop_table("level_roles")
    op.drop_index("ix_activity_recent", table_name="activity_log")
    op.drop_table("activity_log")
    op.drop_index("ix_user_scores_guild_xp", table_name="user_scores")
    op.drop_table("user_scores")
    op.drop_table("guild_settings")
