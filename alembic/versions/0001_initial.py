"""Initial schema

Creates every table from the current SQLAlchemy metadata: users, interviews
with their questions and responses, the question bank, reports, payments,
uploads and notifications.

Revision ID: 0001_initial
Revises: None
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    from interview_bot.extensions import db
    import interview_bot.models  # noqa: F401

    db.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    from interview_bot.extensions import db
    import interview_bot.models  # noqa: F401

    db.metadata.drop_all(bind=op.get_bind(), checkfirst=True)
