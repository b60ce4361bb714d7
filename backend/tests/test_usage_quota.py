from datetime import date

from examsim.services.usage_quota import UsageQuota


def _quota(day=date(2026, 10, 19), quota=3):
    return UsageQuota(quota=quota, today=lambda: day)


def test_fresh_day_starts_full(mem_redis):
    status = _quota().status()
    assert (status.remaining, status.quota, status.day) == (3, 3, "2026-10-19")
    assert not status.exhausted


def test_consume_counts_down_and_floors_at_zero(mem_redis):
    q = _quota()
    assert q.consume() == 2
    assert q.consume(5) == 0
    assert q.consume() == 0
    assert q.remaining() == 0
    assert q.status().exhausted
    assert 0 < mem_redis.ttl("quota:2026-10-19") <= 2 * 24 * 60 * 60


def test_new_day_resets(mem_redis):
    _quota().consume(3)
    assert _quota(day=date(2026, 10, 20)).remaining() == 3


def test_store_down_reports_available(down_redis):
    q = _quota()
    assert q.remaining() == 3
    assert q.consume() == 3


def test_each_consume_counts(mem_redis):
    q = _quota(quota=5)
    q.consume()
    q.consume()
    assert q.remaining() == 3
    assert mem_redis.get("quota:2026-10-19") == "2"


def test_acquire_is_refused_once_used_up(mem_redis):
    q = _quota(quota=2)
    assert q.acquire() is True
    assert q.acquire() is True
    assert q.acquire() is False
    assert q.remaining() == 0


def test_two_quota_handles_share_one_counter(mem_redis):
    # Two workers on the same store: the last unit goes to exactly one of them.
    a, b = _quota(quota=1), _quota(quota=1)
    assert [a.acquire(), b.acquire()] == [True, False]


def test_acquire_allowed_when_store_down(down_redis):
    assert _quota(quota=0).acquire() is True
