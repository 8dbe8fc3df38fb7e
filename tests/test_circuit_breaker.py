import pytest
from pybreaker import CircuitBreakerError

from booking_core.config.settings import Settings
from booking_core.core.circuit_breaker import CircuitBreakerConfig
from booking_core.monitoring.metrics import SERVICE_NAME, circuit_breaker_state


@pytest.fixture
def cb_config():
    return CircuitBreakerConfig(
        Settings(
            cb_pricing_fail_max=2,
            cb_pricing_reset_timeout=30,
            cb_payment_fail_max=1,
            cb_payment_reset_timeout=60,
        )
    )


def _fail():
    raise ConnectionError("Service down")


def test_breakers_are_created_once(cb_config):
    assert cb_config.get_pricing_breaker() is cb_config.get_pricing_breaker()
    assert cb_config.get_payment_breaker() is not cb_config.get_pricing_breaker()


def test_pricing_breaker_opens_after_fail_max(cb_config):
    breaker = cb_config.get_pricing_breaker()

    for _ in range(2):
        with pytest.raises((ConnectionError, CircuitBreakerError)):
            breaker(_fail)()

    assert breaker.current_state == "open"
    with pytest.raises(CircuitBreakerError):
        breaker(lambda: "never called")()


def test_pricing_breaker_ignores_malformed_responses(cb_config):
    breaker = cb_config.get_pricing_breaker()

    def malformed():
        raise ValueError("Expecting value: line 1 column 1")

    for _ in range(3):
        with pytest.raises(ValueError):
            breaker(malformed)()

    assert breaker.fail_counter == 0
    assert breaker.current_state == "closed"


def test_success_resets_counter(cb_config):
    breaker = cb_config.get_pricing_breaker()

    with pytest.raises(ConnectionError):
        breaker(_fail)()
    assert breaker.fail_counter == 1

    assert breaker(lambda: "ok")() == "ok"
    assert breaker.fail_counter == 0


def test_state_change_updates_gauge(cb_config):
    breaker = cb_config.get_payment_breaker()

    with pytest.raises((ConnectionError, CircuitBreakerError)):
        breaker(_fail)()

    gauge = circuit_breaker_state.labels(service=SERVICE_NAME, circuit_name="payment_gateway")
    assert gauge._value.get() == 1


def test_breaker_stats(cb_config):
    cb_config.get_pricing_breaker()
    cb_config.get_payment_breaker()

    stats = cb_config.get_breaker_stats()

    assert stats["pricing"] == {
        "state": "closed",
        "fail_counter": 0,
        "fail_max": 2,
        "reset_timeout": 30,
    }
    assert stats["payment"]["fail_max"] == 1
