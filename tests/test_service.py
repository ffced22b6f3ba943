from __future__ import annotations

import pytest

from osc_actions import ConfigurationError, DummyHost, OscActionService, ServiceConfig, argument


def test_start_registers_defaults_and_freezes():
    service = OscActionService(DummyHost())
    service.start()
    assert service.running
    assert service.registry.frozen
    assert {"/evaluate", "/transport/start", "/transport/stop", "/transport/bpm", "/transport/lpb"} <= {
        entry["name"] for entry in service.available_messages()
    }
    with pytest.raises(ConfigurationError):
        service.register_action(pattern="/late", handler=lambda: None)
    service.stop()
    assert not service.running


def test_custom_actions_during_registration_phase():
    service = OscActionService(DummyHost(), ServiceConfig(register_defaults=False))
    received = []

    @service.action("/mixer/level", description="Set level", arguments=[argument("db", "number")])
    def set_level(db):
        received.append(db)

    service.register_action({"pattern": "/ping", "handler": lambda: received.append("pong")})

    with service:
        assert service.dispatch("/mixer/level", [-6.0]) is True
        assert service.dispatch("/ping") is True
        assert service.dispatch("/transport/start") is False

    assert received == [-6.0, "pong"]
    assert [e["name"] for e in service.available_messages()] == ["/mixer/level", "/ping"]


def test_register_action_rejects_mixed_forms():
    service = OscActionService(DummyHost())
    with pytest.raises(ConfigurationError):
        service.register_action({"pattern": "/a", "handler": print}, pattern="/b")


def test_duplicate_of_default_pattern_aborts_start():
    service = OscActionService(DummyHost())
    service.register_action(pattern="/transport/stop", handler=lambda: None)
    with pytest.raises(ConfigurationError, match="already registered"):
        service.start()
    assert not service.running


def test_configured_tempo_ranges():
    host = DummyHost()
    service = OscActionService(host, ServiceConfig(bpm_range=(60, 180)))
    service.start()
    service.dispatch("/transport/bpm", [400])
    assert host.song().transport.bpm == 180
    bpm = next(e for e in service.available_messages() if e["name"] == "/transport/bpm")
    assert bpm["description"] == "Set the songs current BPM [60-180]"


def test_dispatch_before_start_warns_once(capsys):
    service = OscActionService(DummyHost())
    service.register_action(pattern="/early", handler=lambda: None)
    assert service.dispatch("/early") is True
    assert service.dispatch("/early") is True
    assert capsys.readouterr().err.count("dispatching before start()") == 1


def test_evaluate_and_rejections(service):
    assert tuple(service.evaluate("1+1")) == (True, 2)
    service.dispatch("/does/not/exist", [])
    service.dispatch("/transport/bpm", ["fast"])
    reasons = [r["reason"] for r in service.rejections()]
    assert reasons == ["unknown_pattern", "type_mismatch"]
    assert len(service.rejections(limit=1)) == 1
