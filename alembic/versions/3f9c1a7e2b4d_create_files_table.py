"""Create files table

Revision ID: 3f9c1a7e2b4d
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel

# revision identifiers, used by Alembic.
revision: str = '3f9c1a7e2b4d'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the files table with its hash uniqueness and links count checks."""
    op.create_table(
        'files',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column(
            'hash',
            sqlmodel.sql.sqltypes.AutoString(length=128),
            nullable=False
        ),
        sa.Column(
            'path',
            sqlmodel.sql.sqltypes.AutoString(length=1024),
            nullable=False
        ),
        sa.Column(
            'name',
            sqlmodel.sql.sqltypes.AutoString(length=255),
            nullable=False
        ),
        sa.Column('links_count', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('hash', name='uq_files_hash'),
        sa.CheckConstraint('links_count >= 0', name='non_negative_links_count'),
    )


def downgrade() -> None:
    op.drop_table('files')
