"""
Per-payer mutual exclusion.

All mutations of a payer's ledger rows run inside `serialized`. Inside one
process this is a lock per payer; across processes the services also take
row locks (`SELECT ... FOR UPDATE`) and rely on the `version` columns of
ledger and credit rows.
"""
from contextlib import contextmanager
import logging
import threading

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from config import settings
from services.errors import ConcurrentModification

logger = logging.getLogger(__name__)

_registry_guard = threading.Lock()
# key -> [lock, number of threads holding or waiting for it]
_payer_locks = {}


def _checkout(key: str):
    with _registry_guard:
        slot = _payer_locks.get(key)
        if slot is None:
            slot = _payer_locks[key] = [threading.Lock(), 0]
        slot[1] += 1
        return slot[0]


def _checkin(key: str):
    with _registry_guard:
        slot = _payer_locks[key]
        slot[1] -= 1
        if slot[1] == 0:
            del _payer_locks[key]


@contextmanager
def serialized(db, key: str, timeout: float = None):
    """Serialize work on `key` (a payer id, or `rate:<subject>`) and make it all-or-nothing.

    Commits the session when the block finishes and rolls it back on any
    error. Lock timeouts, optimistic version conflicts and unique-key races
    surface as ConcurrentModification.
    """
    lock = _checkout(key)
    wait = settings.PAYER_LOCK_TIMEOUT if timeout is None else timeout
    if not lock.acquire(timeout=wait):
        _checkin(key)
        logger.warning("Timed out waiting for %s after %.1fs", key, wait)
        raise ConcurrentModification(f"Another operation is in progress for {key}")
    try:
        # Rows cached before the lock was taken may be stale
        db.expire_all()
        try:
            yield
            db.commit()
        except (StaleDataError, IntegrityError) as exc:
            db.rollback()
            logger.warning("Version conflict on %s: %s", key, exc)
            raise ConcurrentModification(
                f"Ledger rows for {key} changed concurrently; retry the request"
            ) from exc
        except BaseException:
            db.rollback()
            raise
    finally:
        lock.release()
        _checkin(key)
