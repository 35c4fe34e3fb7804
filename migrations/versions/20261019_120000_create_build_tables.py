"""create repositories, commits, requests, builds and jobs tables

Revision ID: 001_build_tables
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_build_tables"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "repositories",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("owner_name", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("last_build_id", sa.Integer),
        sa.Column("last_build_number", sa.String(32)),
        sa.Column("last_build_state", sa.String(32)),
        sa.Column("last_build_result", sa.Integer),
        sa.Column("last_build_started_at", sa.DateTime(timezone=True)),
        sa.Column("last_build_finished_at", sa.DateTime(timezone=True)),
        sa.Column("last_build_duration", sa.Integer),
        _created_at(),
        sa.UniqueConstraint("owner_name", "name", name="uq_repository_owner_name"),
    )

    op.create_table(
        "commits",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "repository_id",
            sa.Integer,
            sa.ForeignKey("repositories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("commit", sa.String(64), nullable=False),
        sa.Column("branch", sa.String(255)),
        sa.Column("message", sa.Text),
        sa.Column("committed_at", sa.DateTime(timezone=True)),
        _created_at(),
    )
    op.create_index("ix_commits_repository_id", "commits", ["repository_id"])
    op.create_index("ix_commits_commit", "commits", ["commit"])
    op.create_index("ix_commits_branch", "commits", ["branch"])

    op.create_table(
        "requests",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "repository_id",
            sa.Integer,
            sa.ForeignKey("repositories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "commit_id",
            sa.Integer,
            sa.ForeignKey("commits.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(32), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("config", sa.JSON),
        sa.Column("owner_type", sa.String(32)),
        sa.Column("owner_id", sa.Integer),
        _created_at(),
    )
    op.create_index("ix_requests_repository_id", "requests", ["repository_id"])
    op.create_index("ix_requests_commit_id", "requests", ["commit_id"])

    op.create_table(
        "builds",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "repository_id",
            sa.Integer,
            sa.ForeignKey("repositories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "commit_id",
            sa.Integer,
            sa.ForeignKey("commits.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "request_id",
            sa.Integer,
            sa.ForeignKey("requests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("owner_type", sa.String(32)),
        sa.Column("owner_id", sa.Integer),
        sa.Column("number", sa.String(32), nullable=False),
        sa.Column("state", sa.String(32), nullable=False),
        sa.Column("previous_state", sa.String(32)),
        sa.Column("event_type", sa.String(32), nullable=False),
        sa.Column("config", sa.JSON, nullable=False),
        sa.Column("result", sa.Integer),
        sa.Column("previous_result", sa.Integer),
        sa.Column("started_at", sa.DateTime(timezone=True)),
        sa.Column("finished_at", sa.DateTime(timezone=True)),
        sa.Column("duration", sa.Integer),
        _created_at(),
        sa.UniqueConstraint(
            "repository_id", "number", name="uq_build_repository_number"
        ),
    )
    op.create_index("ix_builds_repository_id", "builds", ["repository_id"])
    op.create_index("ix_builds_commit_id", "builds", ["commit_id"])
    op.create_index("ix_builds_request_id", "builds", ["request_id"])
    op.create_index("ix_builds_state", "builds", ["state"])
    op.create_index("ix_builds_event_type", "builds", ["event_type"])
    op.create_index(
        "ix_builds_repository_state", "builds", ["repository_id", "state"]
    )

    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "build_id",
            sa.Integer,
            sa.ForeignKey("builds.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "repository_id",
            sa.Integer,
            sa.ForeignKey("repositories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("number", sa.String(64), nullable=False),
        sa.Column("state", sa.String(32), nullable=False),
        sa.Column("config", sa.JSON, nullable=False),
        sa.Column("allow_failure", sa.Boolean, nullable=False),
        sa.Column("result", sa.Integer),
        sa.Column("queued_at", sa.DateTime(timezone=True)),
        sa.Column("started_at", sa.DateTime(timezone=True)),
        sa.Column("finished_at", sa.DateTime(timezone=True)),
        _created_at(),
    )
    op.create_index("ix_jobs_build_id", "jobs", ["build_id"])
    op.create_index("ix_jobs_repository_id", "jobs", ["repository_id"])
    op.create_index("ix_jobs_state", "jobs", ["state"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("jobs")
    op.drop_table("builds")
    op.drop_table("requests")
    op.drop_table("commits")
    op.drop_table("repositories")
