"""create_content_embeddings_and_search_history

Revision ID: 4b1d9c2e7a60
Revises:
Create Date: 2025-12-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from pgvector.sqlalchemy import Vector

# revision identifiers, used by Alembic.
revision: str = '4b1d9c2e7a60'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EMBEDDING_DIMENSION = 384

content_type_enum = postgresql.ENUM(
    'transcript', 'summary', 'note', 'conversation',
    name='content_type',
    create_type=False,
)


def upgrade() -> None:
    """
    Create the indexing and search tables.

    1. content_embeddings - Chunk text with its embedding, scoped by owner and video
    2. search_history - Searches run by registered users

    No approximate nearest-neighbor index is created: candidate sets are
    bounded by owner/video filters and scanned exactly.
    """

    # ================================
    # Enable pgvector extension if not already enabled
    # ================================
    op.execute('CREATE EXTENSION IF NOT EXISTS vector')

    content_type_enum.create(op.get_bind(), checkfirst=True)

    # ================================
    # Create content_embeddings table
    # ================================
    op.create_table(
        'content_embeddings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='Auto-incrementing primary key'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.Column('owner_key', sa.String(length=255), nullable=False, comment='Rendered owner key (user:<id> or session:<id>)'),
        sa.Column('video_id', sa.Integer(), nullable=False, comment='Source video ID'),
        sa.Column('content_type', content_type_enum, nullable=False, comment='transcript, summary, note or conversation'),
        sa.Column('chunk_index', sa.Integer(), nullable=False, comment='Position of this chunk within its content stream (0-indexed)'),
        sa.Column('content', sa.Text(), nullable=False, comment='Plain text of the chunk'),
        sa.Column('embedding', Vector(EMBEDDING_DIMENSION), nullable=False, comment='Embedding vector of the chunk text'),
        sa.Column('chunk_metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Position, length, timestamps'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_content_embeddings')),
        sa.UniqueConstraint('owner_key', 'video_id', 'content_type', 'chunk_index', name='uq_content_embeddings_chunk'),
        comment='Indexed chunks of video transcripts, summaries, notes and conversations'
    )

    op.create_index('ix_content_embeddings_owner_key', 'content_embeddings', ['owner_key'])
    op.create_index('ix_content_embeddings_video_id', 'content_embeddings', ['video_id'])
    op.create_index('ix_content_embeddings_video_type', 'content_embeddings', ['video_id', 'content_type'])

    # ================================
    # Create search_history table
    # ================================
    op.create_table(
        'search_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False, comment='Auto-incrementing primary key'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Timestamp when record was created (UTC)'),
        sa.Column('owner_key', sa.String(length=255), nullable=False, comment='Rendered owner key of the searcher'),
        sa.Column('query', sa.Text(), nullable=False, comment='Query text as entered'),
        sa.Column('filter_params', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Filters applied to the search'),
        sa.Column('results_count', sa.Integer(), nullable=False, comment='Number of results returned'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_search_history')),
        comment='Semantic searches run by registered users'
    )

    op.create_index('ix_search_history_owner_key', 'search_history', ['owner_key'])


def downgrade() -> None:
    """Drop the indexing and search tables."""
    op.drop_index('ix_search_history_owner_key', table_name='search_history')
    op.drop_table('search_history')

    op.drop_index('ix_content_embeddings_video_type', table_name='content_embeddings')
    op.drop_index('ix_content_embeddings_video_id', table_name='content_embeddings')
    op.drop_index('ix_content_embeddings_owner_key', table_name='content_embeddings')
    op.drop_table('content_embeddings')

    content_type_enum.drop(op.get_bind(), checkfirst=True)

    # The vector extension is left in place; other schemas may use it
