from hoops_sync.token_cache import SAFETY_MARGIN_SECONDS, TokenCache


def test_empty_cache_returns_none(clock):
    assert TokenCache(clock=clock).get() is None


def test_put_applies_safety_margin(clock):
    cache = TokenCache(clock=clock)
    entry = cache.put("tok", 7200)
    assert entry.expires_at == clock.now + 7200 - SAFETY_MARGIN_SECONDS
    assert cache.get() == "tok"


def test_expires_at_margin_boundary(clock):
    cache = TokenCache(clock=clock)
    cache.put("tok", 7200)
    clock.advance(7200 - SAFETY_MARGIN_SECONDS - 1)
    assert cache.get() == "tok"
    clock.advance(1)
    assert cache.get() is None


def test_invalidate(clock):
    cache = TokenCache(clock=clock)
    cache.put("tok", 7200)
    cache.invalidate()
    assert cache.get() is None
    assert cache.expires_at is None
