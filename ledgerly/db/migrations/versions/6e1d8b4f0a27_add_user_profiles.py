"""Add user_profiles table for shop details and onboarding state.

Revision ID: 6e1d8b4f0a27
Revises: 3c9e1f7a2b64
Create Date: 2026-10-19 12:00:00.000000+00:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "6e1d8b4f0a27"
down_revision = "3c9e1f7a2b64"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "user_profiles",
        # Same id as the auth provider's user; one profile per account
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("full_name", sa.Unicode(200), nullable=True),
        sa.Column("shop_name", sa.Unicode(200), nullable=True),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("address", sa.Unicode(500), nullable=True),
        sa.Column("currency", sa.String(3), nullable=False, server_default="TRY"),
        sa.Column("language", sa.String(10), nullable=False, server_default="en"),
        sa.Column("industry", sa.String(100), nullable=True),
        sa.Column("logo_url", sa.String(2048), nullable=True),
        sa.Column(
            "onboarding_completed",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.execute(
        """
        CREATE TRIGGER trigger_user_profiles_updated_at
        BEFORE UPDATE ON user_profiles
        FOR EACH ROW
        EXECUTE FUNCTION update_updated_at_column();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trigger_user_profiles_updated_at ON user_profiles;")
    op.drop_table("user_profiles")
