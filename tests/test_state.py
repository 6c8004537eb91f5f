import random

import pytest

from pool_monitor.state import AccountState


def test_first_observation_has_zero_delta():
    state = AccountState(10)
    delta, rolling = state.apply(42.0)
    assert delta == 0.0
    assert rolling == 0.0
    assert state.last_value == 42.0


def test_subsequent_deltas_follow_values():
    state = AccountState(10)
    values = [10.0, 12.0, 9.0, 9.0, 15.5]
    deltas = [state.apply(value)[0] for value in values]
    assert deltas[0] == 0.0
    for index in range(1, len(values)):
        assert deltas[index] == pytest.approx(values[index] - values[index - 1])


def test_rolling_sum_matches_naive_window():
    rng = random.Random(7)
    state = AccountState(10)
    deltas = []
    for _ in range(25):
        delta, rolling = state.apply(rng.uniform(-100.0, 100.0))
        deltas.append(delta)
        window = deltas[-10:]
        assert rolling == pytest.approx(sum(window), abs=1e-9)
        assert state.ring == pytest.approx(tuple(window))
    assert len(state.ring) == 10


def test_ring_evicts_oldest_first():
    state = AccountState(2)
    for value in (1.0, 2.0, 4.0, 8.0):
        state.apply(value)
    assert state.ring == (2.0, 4.0)
    assert state.rolling_sum == pytest.approx(6.0)


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        AccountState(0)
