from datetime import timedelta

from sqlmodel import select

from minesweeper_api.core.time import to_storage
from minesweeper_api.models import RateLimitCounter, UserStats
from minesweeper_api.services.maintenance import Housekeeper


def seed(session, clock):
    now = to_storage(clock())
    session.add(RateLimitCounter(key_type="ip", key_value="old:1", count=3, expires_at=now - timedelta(seconds=5)))
    session.add(RateLimitCounter(key_type="ip", key_value="new:1", count=1, expires_at=now + timedelta(seconds=60)))
    session.add(UserStats(username="gone", difficulty="beginner", updated_at=now - timedelta(days=31)))
    session.add(UserStats(username="kept", difficulty="beginner", updated_at=now - timedelta(days=1)))
    session.commit()


def test_perform_maintenance_removes_expired_rows(session, clock):
    seed(session, clock)
    report = Housekeeper(clock=clock).perform_maintenance(session)

    assert report["totalCleaned"] == 2
    assert report["status"] == "completed"
    assert len(report["actions"]) == 2
    assert [row.key_value for row in session.exec(select(RateLimitCounter)).all()] == ["new:1"]
    assert [row.username for row in session.exec(select(UserStats)).all()] == ["kept"]


def test_maintenance_is_idempotent(session, clock):
    seed(session, clock)
    housekeeper = Housekeeper(clock=clock)
    housekeeper.perform_maintenance(session)
    report = housekeeper.perform_maintenance(session)
    assert report["totalCleaned"] == 0
    assert report["status"] == "no_action_needed"


def test_maybe_run_respects_interval(session, clock):
    housekeeper = Housekeeper(interval_seconds=3600, clock=clock)
    assert housekeeper.maybe_run(session) is not None
    clock.advance(60)
    assert housekeeper.maybe_run(session) is None
    clock.advance(3600)
    assert housekeeper.maybe_run(session) is not None

    housekeeper.reset()
    assert housekeeper.maybe_run(session) is not None


def test_health_report_counts_tables(session, clock):
    seed(session, clock)
    report = Housekeeper(clock=clock).health_report(session)
    assert report["tables"]["rate_limit_counters"] == 2
    assert report["tables"]["user_stats"] == 2
    assert report["tables"]["leaderboard_records"] == 0
    assert report["status"] == "needs_attention"
    assert any("expired" in item for item in report["recommendations"])
