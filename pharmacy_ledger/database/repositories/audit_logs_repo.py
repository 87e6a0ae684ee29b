"""
Audit trail: append-only rows of {actor, action, entity, changes}.

Writing an audit row must never fail the business operation that triggered
it. Every write goes through `record`, which catches, logs and counts its own
failures (see `failed_writes`) and returns None instead of raising.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Mapping, Optional

from .errors import SilentAuditFailure

_log = logging.getLogger(__name__)

ACTIONS = ("create", "update", "delete", "login", "logout")


def diff_changes(old_row: Mapping[str, Any], payload: Mapping[str, Any]) -> dict:
    """
    Shallow field diff: {key: {"old": ..., "new": ...}} for every key of
    `payload` whose value differs from `old_row[key]`. Keys absent from the
    old row compare against None.
    """
    changes = {}
    for key, new in payload.items():
        old = old_row.get(key)
        if old != new:
            changes[key] = {"old": old, "new": new}
    return changes


class AuditLogsRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self.failed_writes = 0

    # ------------------------------------------------------------------
    # Writes (best effort)
    # ------------------------------------------------------------------
    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Any = None,
        entity_name: Optional[str] = None,
        changes: Optional[Mapping[str, Any]] = None,
        *,
        user_id: Optional[int] = None,
        username: Optional[str] = None,
    ) -> Optional[int]:
        """Append one audit row. Returns its id, or None if the write failed."""
        try:
            return self._write(action, entity_type, entity_id, entity_name, changes, user_id, username)
        except SilentAuditFailure as e:
            self.failed_writes += 1
            _log.warning("Audit log write failed (%s %s #%s): %s", action, entity_type, entity_id, e)
            return None
        except Exception:
            self.failed_writes += 1
            _log.exception("Unexpected error writing audit log (%s %s #%s)", action, entity_type, entity_id)
            return None

    def log_create(self, entity_type: str, entity_id: Any, entity_name: Optional[str],
                   changes: Optional[Mapping[str, Any]] = None, **actor) -> Optional[int]:
        return self.record("create", entity_type, entity_id, entity_name, changes, **actor)

    def log_update(self, entity_type: str, entity_id: Any, entity_name: Optional[str],
                   old_row: Mapping[str, Any], payload: Mapping[str, Any], **actor) -> Optional[int]:
        """Writes only when something actually changed."""
        changes = diff_changes(old_row, payload)
        if not changes:
            return None
        return self.record("update", entity_type, entity_id, entity_name, changes, **actor)

    def log_delete(self, entity_type: str, entity_id: Any, entity_name: Optional[str],
                   changes: Optional[Mapping[str, Any]] = None, **actor) -> Optional[int]:
        return self.record("delete", entity_type, entity_id, entity_name, changes, **actor)

    def _write(self, action, entity_type, entity_id, entity_name, changes, user_id, username) -> int:
        if action not in ACTIONS:
            raise SilentAuditFailure(f"unknown audit action {action!r}")
        try:
            # unknown actors are kept by name only
            valid_user_id = None
            if user_id is not None:
                row = self.conn.execute("SELECT 1 FROM users WHERE user_id=?", (int(user_id),)).fetchone()
                if row:
                    valid_user_id = int(user_id)
                else:
                    _log.warning("User ID %s not found, audit log will be created without user_id", user_id)

            payload = json.dumps(changes, default=str) if changes is not None else None
            cur = self.conn.execute(
                """
                INSERT INTO audit_logs (user_id, username, action, entity_type, entity_id, entity_name, changes)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    valid_user_id, username or "System", action, entity_type,
                    None if entity_id is None else str(entity_id), entity_name, payload,
                ),
            )
            return int(cur.lastrowid)
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise SilentAuditFailure(str(e)) from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list_logs(
        self,
        *,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        action: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Any = None,
        user_id: Optional[int] = None,
        limit: int = 1000,
    ) -> list[dict]:
        where, params = [], []
        if start_date:
            where.append("DATE(created_at) >= DATE(?)")
            params.append(start_date)
        if end_date:
            where.append("DATE(created_at) <= DATE(?)")
            params.append(end_date)
        if action:
            where.append("action = ?")
            params.append(action)
        if entity_type:
            where.append("entity_type = ?")
            params.append(entity_type)
        if entity_id is not None:
            where.append("entity_id = ?")
            params.append(str(entity_id))
        if user_id is not None:
            where.append("user_id = ?")
            params.append(int(user_id))

        sql = "SELECT * FROM audit_logs"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY log_id DESC LIMIT ?"
        params.append(int(limit))

        out = []
        for r in self.conn.execute(sql, params).fetchall():
            d = dict(r)
            d["changes"] = json.loads(d["changes"]) if d["changes"] else None
            out.append(d)
        return out

    def stats(self) -> dict:
        total = self.conn.execute("SELECT COUNT(*) FROM audit_logs").fetchone()[0]
        by_action = self.conn.execute(
            "SELECT action, COUNT(*) AS count FROM audit_logs GROUP BY action ORDER BY action"
        ).fetchall()
        by_entity = self.conn.execute(
            "SELECT entity_type, COUNT(*) AS count FROM audit_logs GROUP BY entity_type ORDER BY entity_type"
        ).fetchall()
        by_user = self.conn.execute(
            """
            SELECT username, COUNT(*) AS count FROM audit_logs
            GROUP BY username ORDER BY count DESC, username LIMIT 10
            """
        ).fetchall()
        return {
            "total_logs": int(total),
            "by_action": {r["action"]: int(r["count"]) for r in by_action},
            "by_entity_type": {r["entity_type"]: int(r["count"]) for r in by_entity},
            "user_activity": [dict(r) for r in by_user],
        }
