"""Per-chatbot, per-session sliding-window rate limiting."""
from chatcore.core.rate_limiter import ChatbotRateLimiter, RateLimiter
from chatcore.schemas.chatbot import RateLimitSettings


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


def limiter_with_clock():
    clock = FakeClock()
    return ChatbotRateLimiter(RateLimiter(clock=clock)), clock


def test_minute_window_blocks_then_recovers():
    limiter, clock = limiter_with_clock()
    config = RateLimitSettings(requests_per_minute=2, requests_per_hour=100)

    assert limiter.check("bot", "s1", config) == (True, 0)
    clock.now += 10
    assert limiter.check("bot", "s1", config) == (True, 0)

    allowed, retry_after = limiter.check("bot", "s1", config)
    assert allowed is False
    assert retry_after == 51  # first request expires 50s from now

    clock.now += 51
    assert limiter.check("bot", "s1", config)[0] is True


def test_hour_window():
    limiter, clock = limiter_with_clock()
    config = RateLimitSettings(requests_per_minute=10, requests_per_hour=3)

    for _ in range(3):
        assert limiter.check("bot", "s1", config)[0]
        clock.now += 61

    allowed, retry_after = limiter.check("bot", "s1", config)
    assert allowed is False
    assert retry_after > 60


def test_sessions_and_chatbots_are_independent():
    limiter, _ = limiter_with_clock()
    config = RateLimitSettings(requests_per_minute=1)

    assert limiter.check("bot", "s1", config)[0]
    assert limiter.check("bot", "s2", config)[0]
    assert limiter.check("other", "s1", config)[0]
    assert not limiter.check("bot", "s1", config)[0]


def test_disabled_rate_limiting_always_allows():
    limiter, _ = limiter_with_clock()
    config = RateLimitSettings(enabled=False, requests_per_minute=1)

    for _ in range(5):
        assert limiter.check("bot", "s1", config) == (True, 0)


def test_cleanup_drops_idle_clients():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.is_allowed("idle", [(5, 60)])

    clock.now += 3_601
    limiter.is_allowed("active", [(5, 60)])

    assert "idle" not in limiter.clients
    assert "active" in limiter.clients
