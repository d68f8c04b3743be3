"""Create users and dishes tables

Revision ID: 001
Revises: None
Create Date: 2025-01-10 00:00:00.000000+00:00

What:  Initial schema: accounts and the dishes they own.
How:   Generic SQLAlchemy types (Uuid, DateTime(timezone=True)) so the same
       revision runs on PostgreSQL and on SQLite for local development.

Rollback: downgrade() drops both tables (destructive — all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False,
                  comment="Unique identifier — also the `sub` claim of issued tokens"),
        sa.Column("email", sa.String(255), nullable=False, comment="Lower-cased login email, unique"),
        sa.Column("password_hash", sa.String(255), nullable=False, comment="bcrypt hash of the password"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    # Emails are stored lower-cased, so a plain unique index is case-insensitive
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "dishes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False, comment="Owning user — immutable after creation"),
        sa.Column("name", sa.Text(), nullable=False, comment="Display name, HTML-escaped on write"),
        sa.Column("plate_size", sa.String(16), nullable=False, comment="small | medium | large"),
        sa.Column("thumbnail_url", sa.String(1024), nullable=True),
        sa.Column("model_url", sa.String(1024), nullable=True),
        sa.Column("qr_payload_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    # Serves "this owner's dishes, newest first"
    op.create_index(
        "idx_dishes_owner_created_at",
        "dishes",
        ["owner_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_dishes_owner_created_at", table_name="dishes")
    op.drop_table("dishes")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
