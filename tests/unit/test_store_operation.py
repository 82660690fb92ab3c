"""Unit tests for the store_operation transaction boundary.

Uses a stand-in session object; no database involved.
"""

import asyncio

import pytest
from libs.common.config import get_settings
from services.volunteer_service.errors import EventFull, StoreUnavailable
from services.volunteer_service.services.store import after_commit, store_operation
from sqlalchemy.exc import OperationalError


class FakeSession:
    def __init__(self, open_transaction=False, rollback_error=None):
        self.open_transaction = open_transaction
        self.rollback_error = rollback_error
        self.rollbacks = 0
        self.commits = 0
        self.info = {}

    def in_transaction(self):
        return self.open_transaction

    async def commit(self):
        self.commits += 1
        self.open_transaction = False

    async def rollback(self):
        self.rollbacks += 1
        if self.rollback_error:
            raise self.rollback_error


@pytest.mark.asyncio
@pytest.mark.unit
async def test_success_closes_trailing_transaction():
    @store_operation
    async def read(db):
        return "rows"

    db = FakeSession(open_transaction=True)
    assert await read(db) == "rows"
    assert db.commits == 1
    assert db.rollbacks == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_ledger_error_rolls_back_and_propagates():
    @store_operation
    async def claim(db):
        raise EventFull()

    db = FakeSession(open_transaction=True)
    with pytest.raises(EventFull):
        await claim(db)
    assert db.rollbacks == 1
    assert db.commits == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_timeout_surfaces_as_store_unavailable(monkeypatch):
    monkeypatch.setattr(get_settings(), "STORE_TIMEOUT_SECONDS", 0.05)

    @store_operation
    async def slow(db):
        await asyncio.sleep(5)

    db = FakeSession(open_transaction=True)
    with pytest.raises(StoreUnavailable) as exc_info:
        await slow(db)
    assert exc_info.value.retryable is True
    assert exc_info.value.status_code == 503
    assert db.rollbacks == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_connection_error_surfaces_as_store_unavailable():
    @store_operation
    async def broken(db):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    db = FakeSession()
    with pytest.raises(StoreUnavailable):
        await broken(db)
    assert db.rollbacks == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failed_rollback_does_not_mask_original_error():
    @store_operation
    async def claim(db):
        raise EventFull()

    db = FakeSession(rollback_error=OperationalError("ROLLBACK", {}, Exception("gone")))
    with pytest.raises(EventFull):
        await claim(db)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_after_commit_steps_run_outside_the_timeout(monkeypatch):
    monkeypatch.setattr(get_settings(), "STORE_TIMEOUT_SECONDS", 0.05)
    delivered = []

    async def slow_delivery():
        await asyncio.sleep(0.2)
        delivered.append("sent")

    @store_operation
    async def write(db):
        after_commit(db, slow_delivery)
        return "saved"

    db = FakeSession(open_transaction=True)
    assert await write(db) == "saved"
    assert delivered == ["sent"]
    assert db.commits == 1
    assert db.rollbacks == 0
    assert db.info == {}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_after_commit_steps_are_dropped_on_failure():
    delivered = []

    async def delivery():
        delivered.append("sent")

    @store_operation
    async def claim(db):
        after_commit(db, delivery)
        raise EventFull()

    db = FakeSession(open_transaction=True)
    with pytest.raises(EventFull):
        await claim(db)
    assert delivered == []
    assert db.info == {}


@pytest.mark.asyncio
@pytest.mark.unit
async def test_failing_after_commit_step_is_logged(caplog):
    async def broken_delivery():
        raise RuntimeError("mailer down")

    @store_operation
    async def write(db):
        after_commit(db, broken_delivery)
        return "saved"

    db = FakeSession(open_transaction=True)
    assert await write(db) == "saved"
    assert "Post-commit step of write failed" in caplog.text
