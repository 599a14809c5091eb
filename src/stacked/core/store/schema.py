"""SQLAlchemy ORM schema for the relationship store.

Tables: branches, repo_meta, sync_runs.

Parent edges are stored by branch name without a foreign key: the base branch
is the implicit root and has no row, and corrupted edges must remain loadable
so the integrity checker can report them.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

SCHEMA_VERSION = 1


class Base(DeclarativeBase):
    """Base class for all stack ORM models."""


class BranchRow(Base):
    """A tracked branch, its parent edge and its cached pull-request bundle."""

    __tablename__ = "branches"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    parent_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    last_synced_commit: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Pull-request cache; valid only when all of number/url/state/repos are set
    pr_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    pr_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    pr_state: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    pr_head_repo: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pr_base_repo: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pr_merge_commit: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class RepoMetaRow(Base):
    """Single-row table holding repository-level metadata."""

    __tablename__ = "repo_meta"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    base_branch: Mapped[str] = mapped_column(String(255), nullable=False)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False)


class SyncRunRow(Base):
    """One executed sync, with its outcome summary."""

    __tablename__ = "sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    summary_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
