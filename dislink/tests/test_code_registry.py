"""Tests for the introduction code registry."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from dislink.errors import AlreadyTerminal, CodeExpired, Forbidden, NotFound
from dislink.services.code_registry import CodeRegistry

pytestmark = pytest.mark.asyncio(loop_scope="session")


class FakeClock:
    def __init__(self):
        self.now = datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return CodeRegistry(clock=clock)


async def test_issue_creates_active_code(registry, owner_id):
    code = await registry.issue(owner_id)

    assert code.status == "active"
    assert code.owner_id == owner_id
    assert code.expires_at is None
    assert len(code.code) == 8
    assert all(c in "ABCDEFGHJKLMNPQRSTUVWXYZ23456789" for c in code.code)


async def test_issue_with_lifetime(registry, owner_id, clock):
    code = await registry.issue(owner_id, expires_in=timedelta(hours=2))

    assert code.expires_at == clock.now + timedelta(hours=2)


async def test_validate_returns_owner_summary(registry, owner_id):
    code = await registry.issue(owner_id)

    result = await registry.validate(code.code.lower())

    assert result.expired is False
    assert result.code.id == code.id
    assert result.owner_summary.id == owner_id
    assert result.owner_summary.name == "Olivia Owner"


async def test_validate_unknown_code(registry):
    with pytest.raises(NotFound):
        await registry.validate("ZZZZZZZZ")


async def test_validate_reports_time_expiry_without_writing(registry, owner_id, clock):
    code = await registry.issue(owner_id, expires_in=timedelta(hours=1))
    clock.now += timedelta(hours=1, seconds=1)

    result = await registry.validate(code.code)

    assert result.expired is True
    stored = await registry.get(code.code)
    assert stored.status == "active"


async def test_revoke_moves_to_expired(registry, owner_id):
    code = await registry.issue(owner_id)

    revoked = await registry.revoke(owner_id, code.code)

    assert revoked.status == "expired"
    assert (await registry.validate(code.code)).expired is True


async def test_revoke_by_non_owner_forbidden(registry, owner_id, scanner_id):
    code = await registry.issue(owner_id)

    with pytest.raises(Forbidden):
        await registry.revoke(scanner_id, code.code)


async def test_revoke_twice_is_terminal(registry, owner_id):
    code = await registry.issue(owner_id)
    await registry.revoke(owner_id, code.code)

    with pytest.raises(AlreadyTerminal):
        await registry.revoke(owner_id, code.code)


async def test_revoke_lazily_expired_code_is_terminal(registry, owner_id, clock):
    code = await registry.issue(owner_id, expires_in=timedelta(hours=1))
    clock.now += timedelta(hours=2)

    with pytest.raises(AlreadyTerminal):
        await registry.revoke(owner_id, code.code)


async def test_redeem_single_use(registry, owner_id):
    code = await registry.issue(owner_id, single_use=True)

    redeemed = await registry.redeem(code.code)

    assert redeemed.status == "redeemed"
    with pytest.raises(AlreadyTerminal):
        await registry.redeem(code.code)


async def test_redeem_after_time_expiry(registry, owner_id, clock):
    code = await registry.issue(owner_id, expires_in=timedelta(minutes=5), single_use=True)
    clock.now += timedelta(minutes=6)

    with pytest.raises(CodeExpired):
        await registry.redeem(code.code)


async def test_terminal_status_never_returns_to_active(registry, owner_id):
    """Status only moves forward: no operation brings a revoked code back."""
    code = await registry.issue(owner_id, single_use=True)
    await registry.revoke(owner_id, code.code)

    with pytest.raises(AlreadyTerminal):
        await registry.redeem(code.code)
    with pytest.raises(AlreadyTerminal):
        await registry.revoke(owner_id, code.code)
    assert (await registry.get(code.code)).status == "expired"


async def test_concurrent_redeem_and_revoke_one_wins(registry, owner_id):
    code = await registry.issue(owner_id, single_use=True)

    results = await asyncio.gather(
        registry.redeem(code.code),
        registry.revoke(owner_id, code.code),
        return_exceptions=True,
    )

    winners = [r for r in results if not isinstance(r, Exception)]
    assert len(winners) == 1
    assert all(isinstance(r, AlreadyTerminal) for r in results if isinstance(r, Exception))
    assert (await registry.get(code.code)).status == winners[0].status


async def test_list_for_owner_newest_first(registry, owner_id):
    first = await registry.issue(owner_id)
    await asyncio.sleep(0.001)
    second = await registry.issue(owner_id)

    codes = await registry.list_for_owner(owner_id)

    assert [c.id for c in codes] == [second.id, first.id]
    assert await registry.list_for_owner(uuid4()) == []
