"""SQLite implementation of the relationship store via SQLAlchemy."""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

from sqlalchemy import Engine, create_engine, delete, event, select
from sqlalchemy.orm import Session, sessionmaker

from stacked.core.store.abc import BranchRecord, RelationshipStore, SyncRun, SyncRunStatus
from stacked.core.store.schema import (
    SCHEMA_VERSION,
    Base,
    BranchRow,
    RepoMetaRow,
    SyncRunRow,
)

logger = logging.getLogger(__name__)

DB_FILENAME = "stack.db"


def create_store_engine(db_path: Path | None) -> Engine:
    """Create a SQLite engine, in memory when db_path is None.

    WAL, busy_timeout and foreign key pragmas are applied on every connection.
    """
    if db_path is None:
        engine = create_engine("sqlite://", echo=False)
    else:
        engine = create_engine(f"sqlite:///{db_path}", echo=False)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def _now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def _row_to_record(row: BranchRow) -> BranchRecord:
    return BranchRecord(
        name=row.name,
        parent=row.parent_name,
        last_synced_commit=row.last_synced_commit,
        pr_number=row.pr_number,
        pr_url=row.pr_url,
        pr_state=row.pr_state,
        pr_head_repo=row.pr_head_repo,
        pr_base_repo=row.pr_base_repo,
        pr_merge_commit=row.pr_merge_commit,
    )


class SqlRelationshipStore(RelationshipStore):
    """Relationship store backed by a per-repository SQLite file.

    Each public write runs in its own session.begin() block, so a logical
    operation commits exactly once or rolls back entirely.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._session_factory: sessionmaker[Session] = sessionmaker(
            bind=engine, expire_on_commit=False
        )
        Base.metadata.create_all(engine)

    @classmethod
    def open(cls, git_common_dir: Path) -> "SqlRelationshipStore":
        """Open (creating if needed) the store next to the git metadata."""
        db_path = git_common_dir / DB_FILENAME
        logger.debug("Opening relationship store at %s", db_path)
        return cls(create_store_engine(db_path))

    @classmethod
    def in_memory(cls) -> "SqlRelationshipStore":
        return cls(create_store_engine(None))

    def get_base_branch(self) -> str | None:
        with self._session_factory() as session:
            row = session.get(RepoMetaRow, 1)
            if row is None:
                return None
            return row.base_branch

    def set_base_branch(self, base_branch: str) -> None:
        with self._session_factory.begin() as session:
            row = session.get(RepoMetaRow, 1)
            if row is None:
                session.add(
                    RepoMetaRow(id=1, base_branch=base_branch, schema_version=SCHEMA_VERSION)
                )
            else:
                row.base_branch = base_branch

    def list_records(self) -> list[BranchRecord]:
        with self._session_factory() as session:
            rows = session.scalars(select(BranchRow).order_by(BranchRow.name)).all()
            return [_row_to_record(row) for row in rows]

    def write_records(
        self, *, upserts: Sequence[BranchRecord], deletes: Sequence[str]
    ) -> None:
        logger.debug(
            "Writing %d branch record(s), deleting %d", len(upserts), len(deletes)
        )
        now = _now()
        with self._session_factory.begin() as session:
            if deletes:
                session.execute(delete(BranchRow).where(BranchRow.name.in_(list(deletes))))
            for record in upserts:
                row = session.get(BranchRow, record.name)
                if row is None:
                    row = BranchRow(name=record.name, created_at=now)
                    session.add(row)
                row.parent_name = record.parent
                row.last_synced_commit = record.last_synced_commit
                row.pr_number = record.pr_number
                row.pr_url = record.pr_url
                row.pr_state = record.pr_state
                row.pr_head_repo = record.pr_head_repo
                row.pr_base_repo = record.pr_base_repo
                row.pr_merge_commit = record.pr_merge_commit
                row.updated_at = now

    def start_sync_run(self) -> int:
        with self._session_factory.begin() as session:
            row = SyncRunRow(status="running", started_at=_now())
            session.add(row)
            session.flush()
            return row.id

    def finish_sync_run(
        self, run_id: int, status: SyncRunStatus, summary: dict[str, Any]
    ) -> None:
        with self._session_factory.begin() as session:
            row = session.get(SyncRunRow, run_id)
            if row is None:
                return
            row.status = status
            row.finished_at = _now()
            row.summary_json = summary

    def list_sync_runs(self, limit: int = 20) -> list[SyncRun]:
        with self._session_factory() as session:
            rows = session.scalars(
                select(SyncRunRow).order_by(SyncRunRow.id.desc()).limit(limit)
            ).all()
            return [
                SyncRun(
                    id=row.id,
                    status=cast(SyncRunStatus, row.status),
                    started_at=row.started_at,
                    finished_at=row.finished_at,
                    summary=row.summary_json,
                )
                for row in rows
            ]
