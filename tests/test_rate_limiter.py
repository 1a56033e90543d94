from mirror_relay.services.rate_limiter import RateLimiter


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_rate_limiter_allows_and_bans():
    clock = Clock()
    rl = RateLimiter(window_seconds=5, max_messages=60, ban_seconds=30, clock=clock)
    key = "10.0.0.1"

    # Send max_messages messages quickly
    for _ in range(60):
        assert rl.allow(key) is True

    # Next one should trigger a temporary ban
    assert rl.allow(key) is False
    assert rl.is_banned(key) is True

    # After ban_seconds, it should clear
    clock.now += 31
    assert rl.is_banned(key) is False
    assert rl.allow(key) is True


def test_window_slides():
    clock = Clock()
    rl = RateLimiter(window_seconds=5, max_messages=3, ban_seconds=30, clock=clock)

    for _ in range(3):
        assert rl.allow("k")
    clock.now += 6
    for _ in range(3):
        assert rl.allow("k")


def test_keys_are_independent():
    clock = Clock()
    rl = RateLimiter(window_seconds=5, max_messages=1, ban_seconds=30, clock=clock)
    assert rl.allow("a")
    assert not rl.allow("a")
    assert rl.allow("b")


def test_forget_clears_window_but_not_ban():
    clock = Clock()
    rl = RateLimiter(window_seconds=5, max_messages=2, ban_seconds=30, clock=clock)
    rl.allow("a")
    rl.allow("a")
    rl.forget("a")
    assert rl.allow("a")
    assert rl.allow("a")

    assert not rl.allow("a")
    rl.forget("a")
    assert rl.is_banned("a")
    assert not rl.allow("a")
