from datetime import datetime, timedelta, timezone
from storesync.utils.circuit_breaker import CircuitBreaker


def test_circuit_opens_and_half_open_cycle():
    cb = CircuitBreaker()
    platform = "shopify"
    # Failure threshold from config is 5; exceed it
    for _ in range(6):
        cb.record_failure(platform)
    allowed, reason = cb.allow_call(platform)
    assert allowed is False and reason == "circuit_open"
    st = cb._states[platform]
    assert st.state == "OPEN"
    assert st.opened_at is not None

    # Pretend the cooldown elapsed
    st.opened_at = datetime.now(timezone.utc) - timedelta(minutes=5)
    allowed, reason = cb.allow_call(platform)
    assert allowed is True and reason is None
    assert st.state == "HALF_OPEN"

    cb.record_success(platform)
    assert st.state == "CLOSED"
    assert st.failures == 0


def test_half_open_failure_reopens():
    cb = CircuitBreaker()
    for _ in range(5):
        cb.record_failure("woocommerce")
    st = cb._states["woocommerce"]
    st.opened_at = datetime.now(timezone.utc) - timedelta(minutes=5)
    assert cb.allow_call("woocommerce") == (True, None)
    cb.record_failure("woocommerce")
    assert st.state == "OPEN"
    assert cb.allow_call("woocommerce") == (False, "circuit_open")


def test_platforms_are_isolated_and_snapshot_reports_state():
    cb = CircuitBreaker()
    for _ in range(5):
        cb.record_failure("shopify")
    assert cb.allow_call("woocommerce") == (True, None)
    snap = cb.snapshot()
    assert snap["shopify"]["state"] == "OPEN"
    assert snap["woocommerce"]["state"] == "CLOSED"
    cb.reset()
    assert cb.snapshot() == {}
