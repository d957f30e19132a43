"""Unit tests for the position update gate."""

import logging

import pytest

from ridenav.services.position_gate import PositionGate
from tests.factories import ORIGIN, make_fix


def test_first_fix_passes():
    gate = PositionGate(interval_s=3.0)

    assert gate.accept(make_fix(ORIGIN, 0)) is True


def test_drops_fixes_inside_window():
    gate = PositionGate(interval_s=3.0)

    results = [gate.accept(make_fix(ORIGIN, t)) for t in (0, 1, 2.9, 3.0, 4.0, 5.9, 6.5)]

    assert results == [True, False, False, True, False, False, True]
    assert gate.dropped == 4


def test_window_measured_from_last_accepted_fix():
    """Test dropped fixes do not extend the window."""
    gate = PositionGate(interval_s=3.0)

    gate.accept(make_fix(ORIGIN, 0))
    for t in (0.5, 1.0, 1.5, 2.0, 2.5):
        gate.accept(make_fix(ORIGIN, t))

    assert gate.accept(make_fix(ORIGIN, 3.0)) is True


def test_fix_without_optional_fields_passes():
    gate = PositionGate(interval_s=3.0)
    fix = make_fix(ORIGIN, 0, speed_mps=None, accuracy_m=None)

    assert gate.accept(fix) is True
    assert fix.speed_mps is None


def test_reset():
    gate = PositionGate(interval_s=3.0)
    gate.accept(make_fix(ORIGIN, 0))

    gate.reset()

    assert gate.accept(make_fix(ORIGIN, 1)) is True


def test_default_interval_from_settings():
    assert PositionGate().interval_s == 3.0


def test_raw_fixes_are_audited(caplog):
    """Test dropped fixes still reach the audit log."""
    gate = PositionGate(interval_s=3.0)

    with caplog.at_level(logging.DEBUG, logger="ridenav.fix_audit"):
        gate.accept(make_fix(ORIGIN, 0))
        gate.accept(make_fix(ORIGIN, 1))

    audit = [r for r in caplog.records if r.name == "ridenav.fix_audit"]
    assert len(audit) == 2


@pytest.mark.asyncio
async def test_throttle_stream():
    gate = PositionGate(interval_s=3.0)

    async def source():
        for t in range(8):
            yield make_fix(ORIGIN, t)

    accepted = [fix async for fix in gate.throttle(source())]

    assert [(fix.timestamp.second) for fix in accepted] == [0, 3, 6]
