from services.api.app.services.rate_limit import RateLimiter


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_allows_up_to_limit_then_rejects() -> None:
    limiter = RateLimiter(clock=_Clock())
    assert [limiter.allow("u-1:checkout", 3, 60) for _ in range(4)] == [True, True, True, False]


def test_window_resets_after_expiry() -> None:
    clock = _Clock()
    limiter = RateLimiter(clock=clock)
    assert limiter.allow("k", 1, 60)
    assert not limiter.allow("k", 1, 60)

    clock.now += 60
    assert limiter.allow("k", 1, 60)


def test_keys_are_independent() -> None:
    limiter = RateLimiter(clock=_Clock())
    assert limiter.allow("a", 1, 60)
    assert limiter.allow("b", 1, 60)
    assert not limiter.allow("a", 1, 60)


def test_non_positive_limit_rejects_everything() -> None:
    limiter = RateLimiter(clock=_Clock())
    assert not limiter.allow("k", 0, 60)
    assert len(limiter) == 0


def test_sweep_removes_only_expired_windows() -> None:
    clock = _Clock()
    limiter = RateLimiter(clock=clock)
    limiter.allow("old", 5, 10)
    clock.now += 5
    limiter.allow("new", 5, 10)

    clock.now += 6
    assert limiter.sweep() == 1
    assert len(limiter) == 1


def test_start_and_stop_sweeper_thread() -> None:
    limiter = RateLimiter(sweep_interval_seconds=0.01)
    limiter.start()
    limiter.start()
    limiter.stop()
    limiter.stop()
