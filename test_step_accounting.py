"""
Test Step Accounting (Pure Logic)
=================================

Exercises StepAccountant, DelayWindow and the counting card without any
MQTT involvement.

Usage:
    pytest test_step_accounting.py
"""

import threading

import pytest

from stepbatch_core import (
    BATCH_LATENCY_5S,
    DelayWindow,
    InvalidModeTransition,
    PersistedSession,
    SensorContractViolation,
    SessionMode,
    StepAccountant,
    batch_delay_from_preset,
    render_counting_card,
)


# ─────────────────────────────────────────────────────────────────────────────
# DelayWindow
# ─────────────────────────────────────────────────────────────────────────────

def test_delay_window_keeps_last_ten_in_order():
    window = DelayWindow(capacity=10)
    for delay in range(12):
        window.append(delay)

    assert len(window) == 10
    assert window.is_full()
    assert window.to_list() == list(range(2, 12))


def test_delay_window_partial_and_clear():
    window = DelayWindow(capacity=3)
    window.append(80)
    window.append(90)

    assert window.to_list() == [80, 90]
    assert not window.is_full()

    window.clear()
    assert len(window) == 0
    assert window.to_list() == []

    # Reusable after clear, eviction still FIFO
    for delay in (1, 2, 3, 4):
        window.append(delay)
    assert window.to_list() == [2, 3, 4]


def test_delay_window_rejects_empty_capacity():
    with pytest.raises(ValueError):
        DelayWindow(capacity=0)


# ─────────────────────────────────────────────────────────────────────────────
# Detector stream
# ─────────────────────────────────────────────────────────────────────────────

def test_detector_events_sum_increments():
    accountant = StepAccountant()
    accountant.activate(SessionMode.DETECTOR, 5_000_000)

    assert accountant.on_detector_event(1, 80) == 1
    assert accountant.on_detector_event(2, 90) == 3

    stats = accountant.get_stats()
    assert stats.step_count == 3
    assert stats.delays_ms == (80, 90)
    assert stats.max_batch_delay_us == BATCH_LATENCY_5S


def test_detector_step_count_is_sum_over_many_events():
    accountant = StepAccountant()
    accountant.activate(SessionMode.DETECTOR, 0)

    increments = [1, 3, 1, 1, 2, 5, 1, 1, 1, 4, 2, 1]
    for i, k in enumerate(increments):
        accountant.on_detector_event(k, 10 * i)

    stats = accountant.get_stats()
    assert stats.step_count == sum(increments)
    assert len(stats.delays_ms) == 10
    assert stats.delays_ms == tuple(10 * i for i in range(2, 12))


def test_detector_rejects_zero_increment_and_negative_latency():
    accountant = StepAccountant()
    accountant.activate(SessionMode.DETECTOR, 0)
    accountant.on_detector_event(1, 5)

    with pytest.raises(SensorContractViolation):
        accountant.on_detector_event(0, 5)
    with pytest.raises(SensorContractViolation):
        accountant.on_detector_event(1, -1)

    stats = accountant.get_stats()
    assert stats.step_count == 1
    assert stats.delays_ms == (5,)


# ─────────────────────────────────────────────────────────────────────────────
# Counter stream
# ─────────────────────────────────────────────────────────────────────────────

def test_counter_first_event_only_captures_baseline():
    accountant = StepAccountant()
    accountant.activate(SessionMode.COUNTER, 0)

    assert accountant.on_counter_event(100, 50) == 0
    stats = accountant.get_stats()
    assert stats.baseline_captured
    assert stats.step_count == 0
    assert stats.delays_ms == ()

    assert accountant.on_counter_event(103, 60) == 3
    stats = accountant.get_stats()
    assert stats.step_count == 3
    assert stats.delays_ms == (60,)


def test_counter_decrease_below_baseline_is_contract_violation():
    accountant = StepAccountant()
    accountant.activate(SessionMode.COUNTER, 0)
    accountant.on_counter_event(100, 0)
    accountant.on_counter_event(104, 20)

    with pytest.raises(SensorContractViolation):
        accountant.on_counter_event(99, 30)

    stats = accountant.get_stats()
    assert stats.step_count == 4
    assert stats.delays_ms == (20,)


def test_counter_negative_latency_is_contract_violation():
    accountant = StepAccountant()
    accountant.activate(SessionMode.COUNTER, 0)
    accountant.on_counter_event(10, 0)

    with pytest.raises(SensorContractViolation):
        accountant.on_counter_event(12, -3)

    assert accountant.get_stats().step_count == 0


def test_counter_baseline_with_negative_latency_is_rejected():
    accountant = StepAccountant()
    accountant.activate(SessionMode.COUNTER, 0)

    with pytest.raises(SensorContractViolation):
        accountant.on_counter_event(50, -1)

    # The rejected event does not become the baseline
    assert not accountant.get_stats().baseline_captured
    accountant.on_counter_event(60, 0)
    accountant.on_counter_event(63, 0)
    assert accountant.get_stats().step_count == 3


# ─────────────────────────────────────────────────────────────────────────────
# Mode transitions
# ─────────────────────────────────────────────────────────────────────────────

def test_events_for_the_wrong_stream_fail_fast():
    accountant = StepAccountant()

    with pytest.raises(InvalidModeTransition):
        accountant.on_detector_event(1, 0)

    accountant.activate(SessionMode.DETECTOR, 0)
    with pytest.raises(InvalidModeTransition):
        accountant.on_counter_event(10, 0)

    accountant.activate(SessionMode.COUNTER, 0)
    with pytest.raises(InvalidModeTransition):
        accountant.on_detector_event(1, 0)


def test_activate_rejects_none_and_negative_delay():
    accountant = StepAccountant()

    with pytest.raises(InvalidModeTransition):
        accountant.activate(SessionMode.NONE, 0)
    with pytest.raises(ValueError):
        accountant.activate(SessionMode.DETECTOR, -1)

    assert accountant.mode == SessionMode.NONE


def test_deactivate_resets_everything():
    accountant = StepAccountant()
    accountant.restore(SessionMode.COUNTER, 0, 10)
    accountant.on_counter_event(5, 0)
    accountant.on_counter_event(7, 40)

    accountant.deactivate()

    stats = accountant.get_stats()
    assert stats.mode == SessionMode.NONE
    assert stats.step_count == 0
    assert stats.prior_step_count == 0
    assert stats.max_batch_delay_us == 0
    assert not stats.baseline_captured
    assert stats.delays_ms == ()
    assert not stats.is_active


# ─────────────────────────────────────────────────────────────────────────────
# Suspend / resume
# ─────────────────────────────────────────────────────────────────────────────

def test_restore_counter_continues_from_saved_count():
    accountant = StepAccountant()
    accountant.restore(SessionMode.COUNTER, 0, 10)

    assert accountant.get_stats().prior_step_count == 10
    accountant.on_counter_event(5, 0)
    assert accountant.on_counter_event(8, 0) == 13


def test_counter_snapshot_round_trip_is_seamless():
    accountant = StepAccountant()
    accountant.activate(SessionMode.COUNTER, 10_000_000)
    accountant.on_counter_event(500, 0)
    accountant.on_counter_event(520, 100)

    snapshot = accountant.snapshot_for_persistence()
    assert snapshot == PersistedSession(SessionMode.COUNTER, 10_000_000, 20)

    resumed = StepAccountant()
    resumed.restore(snapshot.mode, snapshot.max_batch_delay_us, snapshot.step_count)

    stats = resumed.get_stats()
    assert stats.prior_step_count == 20
    assert stats.step_count == 20
    assert stats.delays_ms == ()

    # Sensor restarted at a new total; only the new delta is added
    resumed.on_counter_event(3, 0)
    assert resumed.get_stats().step_count == 20
    assert resumed.on_counter_event(6, 70) == 23


def test_restore_detector_starts_over():
    accountant = StepAccountant()
    accountant.restore(SessionMode.DETECTOR, 5_000_000, 42)

    stats = accountant.get_stats()
    assert stats.mode == SessionMode.DETECTOR
    assert stats.max_batch_delay_us == 5_000_000
    assert stats.step_count == 0
    assert accountant.on_detector_event(1, 0) == 1


def test_restore_none_stays_idle():
    accountant = StepAccountant()
    accountant.activate(SessionMode.DETECTOR, 0)
    accountant.on_detector_event(4, 0)

    accountant.restore(SessionMode.NONE, 0, 0)

    stats = accountant.get_stats()
    assert stats.mode == SessionMode.NONE
    assert stats.step_count == 0


def test_persisted_session_dict_layout():
    session = PersistedSession(SessionMode.DETECTOR, 5_000_000, 7)
    assert session.to_dict() == {"state": 2, "latency": 5_000_000, "steps": 7}
    assert PersistedSession.from_dict({"state": 1, "latency": 0, "steps": 3}) == \
        PersistedSession(SessionMode.COUNTER, 0, 3)

    with pytest.raises(ValueError):
        PersistedSession.from_dict({"state": 1, "latency": 0})
    with pytest.raises(ValueError):
        PersistedSession.from_dict({"state": 9, "latency": 0, "steps": 0})
    with pytest.raises(ValueError):
        PersistedSession.from_dict({"state": 1, "latency": -5, "steps": 0})


# ─────────────────────────────────────────────────────────────────────────────
# Display
# ─────────────────────────────────────────────────────────────────────────────

def test_format_delay_seconds():
    accountant = StepAccountant()
    assert accountant.format_delay_seconds() == ""

    accountant.activate(SessionMode.DETECTOR, 0)
    accountant.on_detector_event(1, 80)
    accountant.on_detector_event(1, 1234)
    accountant.on_detector_event(1, 6)

    assert accountant.format_delay_seconds() == "0.08, 1.23, 0.01"


def test_counting_card_text():
    accountant = StepAccountant()
    accountant.activate(SessionMode.DETECTOR, 5_000_000)
    accountant.on_detector_event(1, 80)
    accountant.on_detector_event(2, 90)

    card = render_counting_card(accountant.get_stats())

    assert card.title == "3 steps"
    assert card.description == (
        "Sensor: Step Detector\n"
        "Max batch delay: 5000000 µs\n"
        "Age of the last 10 events (s): 0.08, 0.09"
    )


def test_counting_card_idle_session():
    card = render_counting_card(StepAccountant().get_stats())

    assert card.title == "0 steps"
    assert "Sensor: -" in card.description
    assert card.description.endswith("(s): -")


def test_batch_presets():
    assert batch_delay_from_preset("0s") == 0
    assert batch_delay_from_preset("5s") == 5_000_000
    assert batch_delay_from_preset("10s") == 10_000_000

    with pytest.raises(ValueError):
        batch_delay_from_preset("20s")


# ─────────────────────────────────────────────────────────────────────────────
# Concurrency
# ─────────────────────────────────────────────────────────────────────────────

def test_concurrent_detector_events_are_not_lost():
    accountant = StepAccountant()
    accountant.activate(SessionMode.DETECTOR, 0)

    def walk():
        for _ in range(500):
            accountant.on_detector_event(1, 1)

    threads = [threading.Thread(target=walk) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stats = accountant.get_stats()
    assert stats.step_count == 2000
    assert len(stats.delays_ms) == 10
