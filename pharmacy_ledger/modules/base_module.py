from __future__ import annotations

from contextlib import contextmanager
import logging
import sqlite3
from typing import Callable, Iterator, List, Optional

from ..database import transaction
from ..database.repositories.audit_logs_repo import AuditLogsRepo
from ..database.repositories.errors import DomainError, map_integrity_error
from ..utils.helpers import today_str

_log = logging.getLogger(__name__)

PostCommitHooks = List[Callable[[], object]]


class BaseService:
    """
    Common plumbing for the business services.

    A service gets the connection (and optionally the acting user) injected; it
    never opens one itself. Multi-step writes go through `_atomic`, which gives
    all-or-nothing semantics and collects post-commit hooks (audit writes) that
    only run once the transaction has committed.
    """

    def __init__(self, conn: sqlite3.Connection, current_user: Optional[dict] = None):
        self.conn = conn
        self.user = current_user
        self.audit = AuditLogsRepo(conn)

    # ---------- actor ----------
    @property
    def user_id(self) -> Optional[int]:
        return int(self.user["user_id"]) if self.user and self.user.get("user_id") is not None else None

    @property
    def actor(self) -> dict:
        """Keyword arguments identifying the acting user for audit writes."""
        return {
            "user_id": self.user_id,
            "username": (self.user or {}).get("username"),
        }

    @staticmethod
    def _date(value: Optional[str]) -> str:
        return value or today_str()

    # ---------- transactions ----------
    @contextmanager
    def _atomic(self, what: str) -> Iterator[PostCommitHooks]:
        """
        Run the block in one transaction. Yields a list the block can append
        zero-arg callables to; they run after COMMIT and are dropped on ROLLBACK.
        A failing hook is logged and skipped, the committed work stands.
        sqlite3.IntegrityError is re-raised as ConstraintViolationError.
        """
        hooks: PostCommitHooks = []
        try:
            with transaction(self.conn):
                yield hooks
        except DomainError as e:
            _log.warning("ROLLBACK %s due to %s: %s", what, type(e).__name__, e)
            raise
        except sqlite3.IntegrityError as e:
            _log.exception("ROLLBACK %s due to constraint violation", what)
            raise map_integrity_error(e) from e
        except Exception:
            _log.exception("ROLLBACK %s due to unexpected error", what)
            raise

        for hook in hooks:
            try:
                hook()
            except Exception:
                _log.exception("Post-commit step failed after %s", what)
