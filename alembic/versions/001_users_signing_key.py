"""Create users table with encrypted signing_key

Revision ID: 001_users_signing_key
Revises:
Create Date: 2026-02-10

Stores storefront accounts together with the per-user request signing key.
signing_key holds a Fernet token (see storefront/core/database/encryption.py),
never the raw hex secret.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_users_signing_key'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users table."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(320), nullable=False, unique=True),
        sa.Column('username', sa.String(50), nullable=True, unique=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='buyer'),
        sa.Column('password_hash', sa.String(255), nullable=False),

        # Encrypted at rest; NULL until first issued
        sa.Column('signing_key', sa.Text(), nullable=True),

        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])


def downgrade() -> None:
    """Drop users table."""
    op.drop_index('ix_users_role', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
