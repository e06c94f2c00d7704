"""SQLite storage for per-property plan analysis records."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from plan_analysis.errors import ConflictError, PersistenceError
from plan_analysis.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredAnalysis:
    """A property's analysis record as read, with the version it was read at."""

    record: dict[str, Any] | None
    version: int
    updated_at: datetime | None


class AnalysisStorage:
    """SQLite-backed record store keyed by property id.

    Writes use an optimistic version check: ``store`` only succeeds if the row
    is still at the version the caller loaded, so concurrent writers (in this
    process or another) cannot overwrite each other's merge.
    """

    def __init__(self, db_path: str) -> None:
        """Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory.
        """
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Ensure the directory for the database exists."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA busy_timeout=5000")
            await self._conn.execute("PRAGMA synchronous=NORMAL")
        return self._conn

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def initialize(self) -> None:
        """Initialize the database schema."""
        conn = await self._get_connection()
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS properties (
                property_id TEXT PRIMARY KEY,
                plan_analysis TEXT,
                version INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
        """)
        await conn.commit()

    async def register_property(self, property_id: str) -> None:
        """Create the property's row if it does not exist yet. Idempotent."""
        conn = await self._get_connection()
        try:
            await conn.execute(
                "INSERT INTO properties (property_id) VALUES (?) "
                "ON CONFLICT(property_id) DO NOTHING",
                (property_id,),
            )
            await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not register property {property_id}: {e}") from e

    async def load(self, property_id: str) -> StoredAnalysis | None:
        """Read the property's analysis record.

        Returns:
            The record and its version, or None if the property is unknown.
            A known property that was never analysed has ``record=None``.

        Raises:
            PersistenceError: If the read fails or the stored JSON is corrupt.
        """
        try:
            conn = await self._get_connection()
            cursor = await conn.execute(
                "SELECT plan_analysis, version, updated_at FROM properties WHERE property_id = ?",
                (property_id,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not load analysis for {property_id}: {e}") from e

        if row is None:
            return None

        record: dict[str, Any] | None = None
        if row["plan_analysis"]:
            try:
                record = json.loads(row["plan_analysis"])
            except ValueError as e:
                raise PersistenceError(
                    f"Stored analysis for {property_id} is not valid JSON: {e}"
                ) from e
            if not isinstance(record, dict):
                raise PersistenceError(f"Stored analysis for {property_id} is not an object")

        updated_at = datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None
        return StoredAnalysis(record=record, version=row["version"], updated_at=updated_at)

    async def store(
        self,
        property_id: str,
        record: dict[str, Any],
        timestamp: datetime | None = None,
        *,
        expected_version: int | None,
    ) -> int:
        """Write the merged record and stamp its update time.

        Args:
            property_id: Property the record belongs to.
            record: Full merged analysis record.
            timestamp: Update time to stamp (defaults to now, UTC).
            expected_version: Version returned by ``load``; None when ``load``
                found no row and a new one must be created.

        Returns:
            The new version of the row.

        Raises:
            ConflictError: If the row changed since it was loaded.
            PersistenceError: If the write fails.
        """
        stamp = (timestamp or datetime.now(UTC)).isoformat()

        # json.dumps is strict (no NaN), so a bad record fails here, not on read
        try:
            payload = json.dumps(record, ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Analysis for {property_id} is not serializable: {e}") from e

        try:
            conn = await self._get_connection()
            if expected_version is None:
                cursor = await conn.execute(
                    """
                    INSERT INTO properties (property_id, plan_analysis, version, updated_at)
                    VALUES (?, ?, 1, ?)
                    ON CONFLICT(property_id) DO NOTHING
                    """,
                    (property_id, payload, stamp),
                )
                new_version = 1
            else:
                cursor = await conn.execute(
                    """
                    UPDATE properties
                    SET plan_analysis = ?, version = version + 1, updated_at = ?
                    WHERE property_id = ? AND version = ?
                    """,
                    (payload, stamp, property_id, expected_version),
                )
                new_version = expected_version + 1
            changed = cursor.rowcount
            await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Could not save analysis for {property_id}: {e}") from e

        if changed != 1:
            logger.warning(
                "analysis_version_conflict",
                property_id=property_id,
                expected_version=expected_version,
            )
            raise ConflictError(
                f"Analysis for property {property_id} was modified concurrently; "
                "retry the request"
            )

        logger.debug("analysis_saved", property_id=property_id, version=new_version)
        return new_version
