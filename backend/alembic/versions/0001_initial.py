from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(50), nullable=False, unique=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )
    op.create_table(
        "leagues",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column(
            "rating_update_mode", sa.String(20), nullable=False, server_default="immediate"
        ),
        _timestamp("created_at"),
    )
    op.create_table(
        "league_roster",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "league_id",
            sa.Integer(),
            sa.ForeignKey("leagues.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("current_rating", sa.Integer(), nullable=False, server_default="1200"),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("joined_at"),
        sa.UniqueConstraint("league_id", "user_id", name="uq_league_roster_league_id_user_id"),
    )
    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "league_id",
            sa.Integer(),
            sa.ForeignKey("leagues.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("player1_roster_id", sa.Integer(), sa.ForeignKey("league_roster.id"), nullable=False),
        sa.Column("player2_roster_id", sa.Integer(), sa.ForeignKey("league_roster.id"), nullable=False),
        sa.Column("winner_roster_id", sa.Integer(), sa.ForeignKey("league_roster.id"), nullable=False),
        sa.Column("player1_sets_won", sa.Integer(), nullable=False),
        sa.Column("player2_sets_won", sa.Integer(), nullable=False),
        sa.Column("player1_points_total", sa.Integer(), nullable=False),
        sa.Column("player2_points_total", sa.Integer(), nullable=False),
        sa.Column("match_format", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="submitted"),
        sa.Column("player1_rating_before", sa.Integer(), nullable=False),
        sa.Column("player2_rating_before", sa.Integer(), nullable=False),
        sa.Column("player1_rating_after", sa.Integer(), nullable=False),
        sa.Column("player2_rating_after", sa.Integer(), nullable=False),
        sa.Column("reported_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("accepted_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        _timestamp("accepted_at", nullable=True),
        _timestamp("rating_applied_at", nullable=True),
        _timestamp("played_at", nullable=True),
        _timestamp("created_at"),
    )
    op.create_index(
        "ix_matches_league_status_accepted_at",
        "matches",
        ["league_id", "status", "accepted_at"],
    )
    op.create_table(
        "match_sets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "match_id",
            sa.Integer(),
            sa.ForeignKey("matches.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("set_number", sa.Integer(), nullable=False),
        sa.Column("player1_score", sa.Integer(), nullable=False),
        sa.Column("player2_score", sa.Integer(), nullable=False),
    )
    op.create_table(
        "rating_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("roster_id", sa.Integer(), sa.ForeignKey("league_roster.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("league_id", sa.Integer(), sa.ForeignKey("leagues.id"), nullable=False),
        sa.Column("match_id", sa.Integer(), sa.ForeignKey("matches.id"), nullable=False),
        sa.Column("rating_before", sa.Integer(), nullable=False),
        sa.Column("rating_after", sa.Integer(), nullable=False),
        sa.Column("rating_change", sa.Integer(), nullable=False),
        _timestamp("recorded_at"),
        sa.UniqueConstraint("roster_id", "match_id", name="uq_rating_history_roster_id_match_id"),
    )
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("related_id", sa.Integer(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
    )


def downgrade():
    op.drop_table("notifications")
    op.drop_table("rating_history")
    op.drop_table("match_sets")
    op.drop_index("ix_matches_league_status_accepted_at", table_name="matches")
    op.drop_table("matches")
    op.drop_table("league_roster")
    op.drop_table("leagues")
    op.drop_table("users")
