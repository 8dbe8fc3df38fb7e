from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, List

from loguru import logger
from sqlalchemy import event
from sqlalchemy.orm import Session

_PENDING_KEY = "pending_table_changes"


@dataclass(frozen=True)
class TableChange:
    table: str
    operation: str  # INSERT / UPDATE / DELETE
    row_id: str


Listener = Callable[[TableChange], None]


class ChangeFeed:
    """Per-table change notifications, delivered after the owning session commits."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = Lock()

    def subscribe(self, table: str, callback: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(table, []).append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._listeners.get(table, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return _unsubscribe

    def publish(self, change: TableChange) -> None:
        with self._lock:
            callbacks = list(self._listeners.get(change.table, []))
            callbacks += self._listeners.get("*", [])

        for callback in callbacks:
            try:
                callback(change)
            except Exception:
                logger.exception(
                    f"Change listener failed for {change.table}:{change.row_id}"
                )


change_feed = ChangeFeed()


def record_change(session: Session, table: str, operation: str, row_id: str) -> None:
    """Queue a change made through a bulk statement the unit of work can't see."""
    session.info.setdefault(_PENDING_KEY, []).append(
        TableChange(table=table, operation=operation, row_id=row_id)
    )


@event.listens_for(Session, "after_flush")
def _collect_flushed(session: Session, flush_context) -> None:  # noqa: ARG001
    for operation, objects in (
        ("INSERT", session.new),
        ("UPDATE", session.dirty),
        ("DELETE", session.deleted),
    ):
        for obj in objects:
            table = getattr(obj, "__tablename__", None)
            row_id = getattr(obj, "id", None)
            if table and row_id is not None:
                record_change(session, table, operation, str(row_id))


@event.listens_for(Session, "after_commit")
def _publish_committed(session: Session) -> None:
    for change in session.info.pop(_PENDING_KEY, []):
        change_feed.publish(change)


@event.listens_for(Session, "after_rollback")
def _discard_rolled_back(session: Session) -> None:
    session.info.pop(_PENDING_KEY, None)
