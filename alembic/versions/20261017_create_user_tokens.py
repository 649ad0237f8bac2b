"""Create user_tokens table for stored Google credentials

Revision ID: 3f1b7c2a9d40
Revises:
Create Date: 2026-10-17

One row per account. The tokens column holds the serialized credential
(access_token, refresh_token, expiry, scope, token_type, updated_at).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1b7c2a9d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('user_tokens',
        sa.Column('account_id', sa.String(length=255), nullable=False),
        sa.Column('tokens', sa.JSON().with_variant(postgresql.JSONB(), 'postgresql'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('account_id')
    )


def downgrade() -> None:
    op.drop_table('user_tokens')
