from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from minesweeper_api.core.time import from_storage
from minesweeper_api.models import RateLimitCounter
from minesweeper_api.services.rate_limiter import RateLimiter, RateLimitPolicy


def test_allows_up_to_limit_then_refuses(session, clock):
    limiter = RateLimiter(session, clock=clock)
    decisions = [limiter.check("ip", "203.0.113.7:1", 3, 120) for _ in range(4)]
    assert [decision.allowed for decision in decisions] == [True, True, True, False]
    assert [decision.remaining for decision in decisions] == [2, 1, 0, 0]


def test_refused_request_does_not_increment(session, clock):
    limiter = RateLimiter(session, clock=clock)
    for _ in range(5):
        limiter.check("ip", "k", 2, 120)
    row = session.exec(select(RateLimitCounter).where(RateLimitCounter.key_value == "k")).one()
    assert row.count == 2


def test_non_positive_limit_is_never_allowed(session, clock):
    limiter = RateLimiter(session, clock=clock)
    assert not limiter.check("ip", "k", 0, 120).allowed


def test_expired_counters_are_purged(session, clock):
    limiter = RateLimiter(session, clock=clock)
    limiter.check("ip", "k", 1, 120)
    assert not limiter.check("ip", "k", 1, 120).allowed

    clock.advance(121)
    assert limiter.check("ip", "k", 1, 120).allowed


def test_request_ceiling_per_fingerprint(session, clock):
    policy = RateLimitPolicy(ip_limit=100, fingerprint_limit=15, global_limit=1000)
    limiter = RateLimiter(session, policy, clock)
    verdicts = [limiter.check_request("203.0.113.7", "abcdef123456") for _ in range(16)]
    assert all(verdict.allowed for verdict in verdicts[:15])
    assert verdicts[14].remaining == 0
    assert not verdicts[15].allowed
    assert verdicts[15].rejected_by == ["fingerprint"]


def test_request_ceiling_per_ip_across_fingerprints(session, clock):
    limiter = RateLimiter(session, RateLimitPolicy(), clock)
    verdicts = [limiter.check_request("203.0.113.7", f"fp{index}") for index in range(21)]
    assert all(verdict.allowed for verdict in verdicts[:20])
    assert not verdicts[20].allowed
    assert verdicts[20].rejected_by == ["ip"]


def test_new_bucket_resets_budget(session, clock):
    policy = RateLimitPolicy(ip_limit=1, fingerprint_limit=1, global_limit=10)
    limiter = RateLimiter(session, policy, clock)
    assert limiter.check_request("ip", "fp").allowed
    assert not limiter.check_request("ip", "fp").allowed

    clock.advance(120)
    assert limiter.check_request("ip", "fp").allowed


def test_remaining_reports_fingerprint_tier(session, clock):
    limiter = RateLimiter(session, RateLimitPolicy(), clock)
    verdict = limiter.check_request("203.0.113.7", "fp")
    assert verdict.allowed
    assert verdict.remaining == 14


def test_ip_ceiling_holds_across_the_old_minute_boundary(session, clock):
    limiter = RateLimiter(session, RateLimitPolicy(), clock)
    clock.advance(50)
    early = [limiter.check_request("203.0.113.7", f"fp{index}") for index in range(15)]
    clock.advance(15)
    late = [limiter.check_request("203.0.113.7", f"fp{index}") for index in range(15, 21)]

    assert all(verdict.allowed for verdict in early + late[:5])
    assert not late[5].allowed
    assert late[5].rejected_by == ["ip"]


def test_counter_expiry_is_stored_in_utc(session, clock):
    RateLimiter(session, clock=clock).check("ip", "k", 5, 120)
    row = session.exec(select(RateLimitCounter).where(RateLimitCounter.key_value == "k")).one()
    assert from_storage(row.expires_at) == clock() + timedelta(seconds=120)


@pytest.fixture()
def broken_store():
    def broken(*_args, **_kwargs):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    return broken


def test_store_failure_fails_closed(session, clock, monkeypatch, broken_store):
    limiter = RateLimiter(session, clock=clock)
    monkeypatch.setattr(limiter, "_consume", broken_store)

    decision = limiter.check("ip", "k", 20, 120)
    assert not decision.allowed
    assert decision.remaining == 0

    verdict = limiter.check_request("203.0.113.7", "fp")
    assert not verdict.allowed
    assert verdict.remaining == 0
    assert sorted(verdict.rejected_by) == ["fingerprint", "global", "ip"]


def test_purge_failure_fails_closed(session, clock, monkeypatch, broken_store):
    limiter = RateLimiter(session, clock=clock)
    monkeypatch.setattr(limiter, "purge_expired", broken_store)
    assert not limiter.check("ip", "k", 20, 120).allowed
