"""create survey responses table

Revision ID: 3c1e5f7a9b20
Revises:
Create Date: 2025-12-16 12:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1e5f7a9b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _json_type(dialect: str):
    if dialect == 'postgresql':
        from sqlalchemy.dialects import postgresql

        return postgresql.JSONB(astext_type=sa.Text())
    return sa.JSON()


def upgrade() -> None:
    """Create survey_responses with unique LINE user and coupon constraints."""

    bind = op.get_bind()
    dialect = bind.dialect.name if bind else 'postgresql'

    timestamp_default = sa.func.now()
    if dialect == 'postgresql':
        timestamp_default = sa.text("timezone('utc', now())")

    op.create_table(
        'survey_responses',
        sa.Column('response_id', sa.Uuid(), nullable=False),
        sa.Column('line_user_id', sa.String(length=64), nullable=False),
        sa.Column('age_range', sa.String(length=16), nullable=False),
        sa.Column('gender', sa.String(length=16), nullable=False),
        sa.Column('channels', _json_type(dialect), nullable=False),
        sa.Column('channel_other_text', sa.String(length=200), nullable=True),
        sa.Column('price_range', sa.String(length=16), nullable=False),
        sa.Column('current_brand', sa.String(length=200), nullable=False),
        sa.Column('coupon_code', sa.String(length=12), nullable=False),
        sa.Column('coupon_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=timestamp_default),
        sa.PrimaryKeyConstraint('response_id'),
        sa.UniqueConstraint('line_user_id', name='uq_survey_responses_line_user_id'),
        sa.UniqueConstraint('coupon_code', name='uq_survey_responses_coupon_code'),
    )
    op.create_index('ix_survey_responses_submitted_at', 'survey_responses', ['submitted_at'], unique=False)


def downgrade() -> None:
    """Drop survey_responses and its index."""

    op.drop_index('ix_survey_responses_submitted_at', table_name='survey_responses')
    op.drop_table('survey_responses')
