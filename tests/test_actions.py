from __future__ import annotations

import pytest

from osc_actions.actions import clamp_value
from osc_actions.host import PLAYMODE_RESTART_PATTERN


@pytest.mark.parametrize("value,expected", [(1200, 999), (10, 32), (140.5, 140.5)])
def test_clamp_value(value, expected):
    assert clamp_value(value, 32, 999) == expected


def test_bpm_is_type_checked_not_range_checked(service, host):
    assert service.dispatch("/transport/bpm", [1200]) is True
    assert host.song().transport.bpm == 999
    assert service.dispatch("/transport/bpm", [1.0]) is True
    assert host.song().transport.bpm == 32
    assert service.dispatch("/transport/bpm", ["140"]) is False
    assert host.song().transport.bpm == 32


def test_lpb_is_clamped(service, host):
    assert service.dispatch("/transport/lpb", [("i", 0)]) is True
    assert host.song().transport.lpb == 1
    assert service.dispatch("/transport/lpb", [("f", 512.0)]) is True
    assert host.song().transport.lpb == 255


def test_transport_start_and_stop(service, host):
    transport = host.song().transport
    assert service.dispatch("/transport/start", []) is True
    assert transport.playing
    assert transport.play_mode == PLAYMODE_RESTART_PATTERN
    assert service.dispatch("/transport/stop") is True
    assert not transport.playing
    assert service.dispatch("/transport/stop", [True]) is False


def test_evaluate_action_runs_in_sandbox(service, host, capsys):
    assert service.dispatch("/evaluate", ["song().transport.bpm = 234"]) is True
    assert host.song().transport.bpm == 234
    assert "OSC Message: evaluating 'song().transport.bpm = 234'" in capsys.readouterr().err


def test_evaluate_action_logs_failures_without_raising(service, capsys):
    assert service.dispatch("/evaluate", ["error('boom')"]) is True
    err = capsys.readouterr().err
    assert "*** expression failed: 'EvaluationError: boom'" in err
    assert service.dispatch("/evaluate", ["1+1"]) is True
    assert service.dispatch("/evaluate", [42]) is False


def test_evaluate_cannot_rebind_host_members(service, host):
    assert service.dispatch("/evaluate", ["host.song = 1"]) is True
    assert callable(host.song)
    assert service.dispatch("/transport/bpm", [140]) is True
    assert host.song().transport.bpm == 140
