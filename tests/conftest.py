from __future__ import annotations

import pytest

from osc_actions import ActionRegistry, DummyHost, OscActionService, ServiceConfig


@pytest.fixture
def host():
    return DummyHost()


@pytest.fixture
def registry():
    return ActionRegistry()


@pytest.fixture
def service(host):
    svc = OscActionService(host, ServiceConfig())
    svc.start()
    yield svc
    svc.stop()
