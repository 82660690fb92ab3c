"""Transaction boundary shared by every public ledger operation."""

import asyncio
import functools
from typing import Awaitable, Callable

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.volunteer_service.errors import StoreUnavailable
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

_AFTER_COMMIT_KEY = "ledger_after_commit"


async def _rollback(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError:
        logger.exception("Rollback failed; session will be discarded")


def after_commit(db: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """Queue ``callback`` to run once the current operation has committed.

    Callbacks run outside the store timeout, so a slow consumer never turns a
    committed operation into a reported failure. They are dropped when the
    operation fails.
    """
    db.info.setdefault(_AFTER_COMMIT_KEY, []).append(callback)


async def _run_after_commit(db: AsyncSession, operation: str) -> None:
    for callback in db.info.pop(_AFTER_COMMIT_KEY, []):
        try:
            await callback()
        except Exception:
            logger.exception("Post-commit step of %s failed", operation)


def store_operation(func):
    """Run ``func(db, ...)`` as one bounded, all-or-nothing unit.

    - any exception, timeout or cancellation rolls the session back
    - the operation is bounded by ``STORE_TIMEOUT_SECONDS``
    - timeouts and connection-level errors surface as ``StoreUnavailable``
    - a trailing read-only transaction is closed before returning
    - steps queued with ``after_commit`` run after the bounded section
    """

    @functools.wraps(func)
    async def wrapper(db: AsyncSession, *args, **kwargs):
        timeout = get_settings().STORE_TIMEOUT_SECONDS

        async def _run():
            try:
                result = await func(db, *args, **kwargs)
                if db.in_transaction():
                    await db.commit()
                return result
            except BaseException:
                db.info.pop(_AFTER_COMMIT_KEY, None)
                await _rollback(db)
                raise

        try:
            result = await asyncio.wait_for(_run(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("%s exceeded %.1fs store timeout", func.__name__, timeout)
            raise StoreUnavailable(
                f"{func.__name__} timed out after {timeout:g}s"
            ) from exc
        except (OperationalError, InterfaceError) as exc:
            logger.warning("%s failed on store error: %s", func.__name__, exc)
            raise StoreUnavailable() from exc

        await _run_after_commit(db, func.__name__)
        return result

    return wrapper
