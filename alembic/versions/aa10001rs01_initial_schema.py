"""initial schema

Revision ID: aa10001rs01
Revises:
Create Date: 2026-10-19 09:00:00.000000

Hey future me - this is the whole RadioSync schema in one go.

TABLES:
- matched_tracks: the dedup ledger. catalog_id is UNIQUE, that constraint is what makes
  "each catalog track lands in at most one collection, at most once" hold across feeds.
- unmatched_tracks: every announcement that did not end up in a collection, with the
  best candidate we saw and a reason. Retry bookkeeping lives here too.
- collections: feed -> playlist id binding (one row per feed).
- daily_stats: per (date, feed) counters, only ever touched through UPDATE expressions.

INDEXES:
- ix_unmatched_tracks_artist_title_lower: functional index for the "top unmatched"
  grouping on lower(trim(artist)), lower(trim(title)).
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'aa10001rs01'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # === matched_tracks ===
    op.create_table(
        'matched_tracks',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('feed', sa.String(50), nullable=False),
        sa.Column('original_artist', sa.String(500), nullable=False),
        sa.Column('original_title', sa.String(500), nullable=False),
        sa.Column('original_text', sa.Text, nullable=False),
        sa.Column('catalog_id', sa.String(64), nullable=False),
        sa.Column('catalog_artist', sa.String(500), nullable=False),
        sa.Column('catalog_title', sa.String(500), nullable=False),
        sa.Column('catalog_url', sa.String(512), nullable=True),
        sa.Column('match_percentage', sa.Integer, nullable=False),
        sa.Column('collection_name', sa.String(255), nullable=False),
        sa.Column('added_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('catalog_id'),
    )
    op.create_index('ix_matched_tracks_feed', 'matched_tracks', ['feed'])
    op.create_index('ix_matched_tracks_timestamp', 'matched_tracks', ['timestamp'])

    # === unmatched_tracks ===
    op.create_table(
        'unmatched_tracks',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('feed', sa.String(50), nullable=False),
        sa.Column('original_artist', sa.String(500), nullable=False),
        sa.Column('original_title', sa.String(500), nullable=False),
        sa.Column('original_text', sa.Text, nullable=False),
        sa.Column('best_catalog_id', sa.String(64), nullable=True),
        sa.Column('best_catalog_artist', sa.String(500), nullable=True),
        sa.Column('best_catalog_title', sa.String(500), nullable=True),
        sa.Column('best_match_percentage', sa.Integer, nullable=False, server_default='0'),
        sa.Column('reason', sa.Text, nullable=False),
        sa.Column('search_results_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('retry_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('last_retry_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_unmatched_tracks_feed', 'unmatched_tracks', ['feed'])
    op.create_index('ix_unmatched_tracks_timestamp', 'unmatched_tracks', ['timestamp'])
    op.create_index(
        'ix_unmatched_tracks_artist_title_lower',
        'unmatched_tracks',
        [sa.text('lower(trim(original_artist))'), sa.text('lower(trim(original_title))')],
    )

    # === collections ===
    op.create_table(
        'collections',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('feed', sa.String(50), nullable=False),
        sa.Column('collection_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('feed'),
    )

    # === daily_stats ===
    op.create_table(
        'daily_stats',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('date', sa.Date, nullable=False),
        sa.Column('feed', sa.String(50), nullable=False),
        sa.Column('tracks_processed', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tracks_matched', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tracks_added', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tracks_duplicated', sa.Integer, nullable=False, server_default='0'),
        sa.Column('tracks_unmatched', sa.Integer, nullable=False, server_default='0'),
        sa.Column('avg_match_percentage', sa.Float, nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('date', 'feed', name='uq_daily_stats_date_feed'),
    )
    op.create_index('ix_daily_stats_date', 'daily_stats', ['date'])


def downgrade() -> None:
    op.drop_index('ix_daily_stats_date', table_name='daily_stats')
    op.drop_table('daily_stats')
    op.drop_table('collections')
    op.drop_index('ix_unmatched_tracks_artist_title_lower', table_name='unmatched_tracks')
    op.drop_index('ix_unmatched_tracks_timestamp', table_name='unmatched_tracks')
    op.drop_index('ix_unmatched_tracks_feed', table_name='unmatched_tracks')
    op.drop_table('unmatched_tracks')
    op.drop_index('ix_matched_tracks_timestamp', table_name='matched_tracks')
    op.drop_index('ix_matched_tracks_feed', table_name='matched_tracks')
    op.drop_table('matched_tracks')
