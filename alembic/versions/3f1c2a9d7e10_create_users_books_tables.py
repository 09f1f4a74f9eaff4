"""create users, books and users_books tables

Revision ID: 3f1c2a9d7e10
Revises:
Create Date: 2026-10-19 09:12:41.530118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7e10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('password', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'books',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quick_link', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('book_details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_books_quick_link', 'books', ['quick_link'], unique=True)

    op.create_table(
        'users_books',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('book_id', sa.Integer(), nullable=False),
        sa.Column('user_rating', sa.Integer(), nullable=True),
        sa.Column('date_started', sa.DateTime(), nullable=True),
        sa.Column('date_finished', sa.DateTime(), nullable=True),
        sa.Column('user_notes', sa.Text(), nullable=True),
        sa.Column('imported', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['book_id'], ['books.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        # a user tracks a book at most once; duplicate adds resolve to the existing row
        sa.UniqueConstraint('user_id', 'book_id', name='uq_users_books_user_id_book_id'),
    )
    # Lookups filter by user alone (listing) and by book alone (cascades)
    op.create_index('ix_users_books_user_id', 'users_books', ['user_id'])
    op.create_index('ix_users_books_book_id', 'users_books', ['book_id'])


def downgrade() -> None:
    op.drop_index('ix_users_books_book_id', table_name='users_books')
    op.drop_index('ix_users_books_user_id', table_name='users_books')
    op.drop_table('users_books')
    op.drop_index('ix_books_quick_link', table_name='books')
    op.drop_table('books')
    op.drop_index('ix_users_username', table_name='users')
    op.drop_table('users')
