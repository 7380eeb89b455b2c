"""
SQLite cache of receipt documents fetched from the record-keeping service.

The cache backs the receipt list, search and register export when the
service is slow or briefly unavailable. It is never consulted for remaining
quantities: reconciliation always re-reads the authoritative history.

An audit_log table records what this client did (receipt created, metadata
edited, register exported) for the operator.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from models.receipt import ReceiptDocument

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS receipts (
    document_number   TEXT PRIMARY KEY,
    po_number         TEXT NOT NULL,

    -- Key fields (denormalised for fast filtering / sorting)
    receipt_date      TEXT,
    vendor_name       TEXT,
    vendor_tax_id     TEXT,
    total             TEXT,           -- Decimal as string

    -- Full document (ReceiptDocument serialised as JSON, camelCase keys)
    payload           TEXT NOT NULL,

    fetched_at        TEXT NOT NULL   -- ISO-8601 UTC
);

CREATE INDEX IF NOT EXISTS idx_receipts_po   ON receipts (po_number);
CREATE INDEX IF NOT EXISTS idx_receipts_date ON receipts (receipt_date DESC);

CREATE TABLE IF NOT EXISTS audit_log (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    document_number  TEXT    NOT NULL,
    timestamp        TEXT    NOT NULL,   -- ISO-8601 UTC
    action           TEXT    NOT NULL,   -- created | metadata_updated | exported
    actor            TEXT    NOT NULL DEFAULT 'system',
    detail           TEXT                -- optional JSON blob with action-specific context
);

CREATE INDEX IF NOT EXISTS idx_audit_document  ON audit_log (document_number);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp DESC);
"""


class ReceiptCache:
    """Thin wrapper around an SQLite file holding the last-seen receipts."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Receipt cache ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def upsert_receipt(self, doc: ReceiptDocument) -> bool:
        """Store or refresh one receipt. Returns False if it has no number yet."""
        if not doc.document_number:
            logger.warning("Not caching receipt for PO %s: no document number", doc.po_number)
            return False
        with self._conn() as conn:
            self._upsert(conn, doc, datetime.now(timezone.utc).isoformat())
        return True

    def replace_all(self, docs: Iterable[ReceiptDocument]) -> int:
        """Replace the cached set with a fresh full listing."""
        fetched_at = datetime.now(timezone.utc).isoformat()
        count = 0
        with self._conn() as conn:
            conn.execute("DELETE FROM receipts")
            for doc in docs:
                if doc.document_number:
                    self._upsert(conn, doc, fetched_at)
                    count += 1
        logger.info("Receipt cache refreshed: %d receipts", count)
        return count

    @staticmethod
    def _upsert(conn: sqlite3.Connection, doc: ReceiptDocument, fetched_at: str) -> None:
        conn.execute(
            """
            INSERT INTO receipts (
                document_number, po_number, receipt_date,
                vendor_name, vendor_tax_id, total, payload, fetched_at
            ) VALUES (
                :document_number, :po_number, :receipt_date,
                :vendor_name, :vendor_tax_id, :total, :payload, :fetched_at
            )
            ON CONFLICT(document_number) DO UPDATE SET
                po_number     = excluded.po_number,
                receipt_date  = excluded.receipt_date,
                vendor_name   = excluded.vendor_name,
                vendor_tax_id = excluded.vendor_tax_id,
                total         = excluded.total,
                payload       = excluded.payload,
                fetched_at    = excluded.fetched_at
            """,
            {
                "document_number": doc.document_number,
                "po_number":       doc.po_number,
                "receipt_date":    doc.receipt_date,
                "vendor_name":     doc.vendor_name,
                "vendor_tax_id":   doc.vendor_tax_id,
                "total":           str(doc.total),
                "payload":         doc.model_dump_json(by_alias=True),
                "fetched_at":      fetched_at,
            },
        )

    def log_audit(
        self,
        document_number: str,
        action: str,
        actor: str = "system",
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the audit log."""
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO audit_log (document_number, timestamp, action, actor, detail)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    document_number,
                    datetime.now(timezone.utc).isoformat(),
                    action,
                    actor,
                    json.dumps(detail, default=str) if detail is not None else None,
                ),
            )

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_receipt(self, document_number: str) -> Optional[ReceiptDocument]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT payload FROM receipts WHERE document_number=?", (document_number,)
            ).fetchone()
        return ReceiptDocument.model_validate_json(row["payload"]) if row else None

    def list_receipts(self, po_number: Optional[str] = None) -> list[ReceiptDocument]:
        """Cached receipts, newest receipt date first."""
        sql = "SELECT payload FROM receipts"
        params: list = []
        if po_number:
            sql += " WHERE po_number = ?"
            params.append(po_number)
        sql += " ORDER BY receipt_date DESC, document_number DESC"
        with self._conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [ReceiptDocument.model_validate_json(r["payload"]) for r in rows]

    def get_audit_log(self, document_number: str) -> list[dict]:
        """Return all audit entries for one receipt, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, timestamp, action, actor, detail
                   FROM audit_log WHERE document_number = ?
                   ORDER BY timestamp ASC, id ASC""",
                (document_number,),
            ).fetchall()
        return [dict(r) for r in rows]
