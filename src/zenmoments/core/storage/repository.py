"""Feedback repository — append-only storage of relaxation feedback.

The repository mediates between FeedbackRecord objects and the SQLite
database, using FieldEncryptor to protect the recorded location.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from zenmoments.core.storage.database import FeedbackDatabase
from zenmoments.core.storage.encryption import FieldEncryptor
from zenmoments.core.storage.models import FeedbackRecord

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "relaxation_feedback"


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class FeedbackRepository:
    """Append-only store of feedback records, keyed by a fixed namespace.

    Usage::

        db = FeedbackDatabase(":memory:")
        db.initialize()
        repo = FeedbackRepository(db, FieldEncryptor(key="..."))

        repo.append_feedback(record)
        history = repo.load_feedback()
    """

    def __init__(
        self,
        database: FeedbackDatabase,
        encryptor: FieldEncryptor,
        *,
        namespace: str = DEFAULT_NAMESPACE,
    ) -> None:
        self._db = database
        self._enc = encryptor
        self._namespace = namespace
        self._write_lock = threading.Lock()

    @property
    def namespace(self) -> str:
        return self._namespace

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    def append_feedback(self, record: FeedbackRecord) -> str:
        """Persist a feedback record and commit immediately.

        Args:
            record: The record to save. An empty ``id`` gets a UUID, an empty
                ``namespace`` gets the repository namespace.

        Returns:
            The record ID.
        """
        rid = record.id or self._new_id()
        namespace = record.namespace or self._namespace
        recorded_at = record.recorded_at or self._now_iso()

        try:
            with self._write_lock:
                conn = self._db.connection
                conn.execute(
                    """INSERT INTO relaxation_feedback (
                        id, namespace, moment_id, moment_timestamp, location_enc,
                        confirmed, nearby_place_name, is_manual, recorded_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        rid,
                        namespace,
                        record.moment_id,
                        record.moment_timestamp,
                        self._enc.encrypt(record.location),
                        int(record.confirmed),
                        record.nearby_place_name,
                        int(record.is_manual),
                        recorded_at,
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to store feedback for {record.moment_id}: {exc}") from exc

        logger.info(
            "Saved feedback %s for moment %s (confirmed=%s)", rid, record.moment_id, record.confirmed
        )
        return rid

    def load_feedback(
        self,
        *,
        namespace: str | None = None,
        limit: int | None = None,
    ) -> list[FeedbackRecord]:
        """Return stored feedback in insertion order, oldest first.

        Args:
            namespace: Namespace to read. Defaults to the repository namespace.
            limit: Return only the newest ``limit`` records.
        """
        query = "SELECT * FROM relaxation_feedback WHERE namespace = ? ORDER BY rowid"
        params: list[Any] = [namespace or self._namespace]
        rows = self._db.connection.execute(query, params).fetchall()
        if limit is not None:
            rows = rows[-limit:] if limit > 0 else []
        return [self._row_to_record(row) for row in rows]

    def count_feedback(self, *, namespace: str | None = None) -> int:
        """Number of feedback records in a namespace."""
        row = self._db.connection.execute(
            "SELECT COUNT(*) FROM relaxation_feedback WHERE namespace = ?",
            (namespace or self._namespace,),
        ).fetchone()
        return row[0]

    def reencrypt_locations(self) -> int:
        """Rewrite every stored location under the primary encryption key.

        Returns:
            Number of rows rewritten.
        """
        try:
            with self._write_lock:
                conn = self._db.connection
                rows = conn.execute(
                    "SELECT id, location_enc FROM relaxation_feedback WHERE location_enc != ''"
                ).fetchall()
                for row in rows:
                    conn.execute(
                        "UPDATE relaxation_feedback SET location_enc = ? WHERE id = ?",
                        (self._enc.rotate(row["location_enc"]), row["id"]),
                    )
                conn.commit()
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to re-encrypt feedback locations: {exc}") from exc
        if rows:
            logger.info("Re-encrypted %d stored feedback locations", len(rows))
        return len(rows)

    def _row_to_record(self, row: Any) -> FeedbackRecord:
        return FeedbackRecord(
            id=row["id"],
            namespace=row["namespace"],
            moment_id=row["moment_id"],
            moment_timestamp=row["moment_timestamp"],
            location=self._enc.decrypt(row["location_enc"] or ""),
            confirmed=bool(row["confirmed"]),
            nearby_place_name=row["nearby_place_name"],
            is_manual=bool(row["is_manual"]),
            recorded_at=row["recorded_at"],
        )
