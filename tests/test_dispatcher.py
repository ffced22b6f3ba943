from __future__ import annotations

from osc_actions import argument
from osc_actions.dispatcher import INVALID_ARGUMENTS, UNKNOWN_PATTERN, Dispatcher
from osc_actions.messages import IncomingMessage
from osc_actions.validator import ARITY_MISMATCH, TYPE_MISMATCH


def _recorder(registry, pattern="/x", specs=()):
    calls = []
    registry.register(pattern, handler=lambda *a: calls.append(a), arguments=list(specs))
    return calls


def test_dispatch_invokes_handler_with_positional_values(registry):
    calls = _recorder(registry, specs=[argument("n", "number"), argument("s", "string")])
    dispatcher = Dispatcher(registry)

    assert dispatcher.dispatch("/x", [42, "x"]) is True
    assert dispatcher.dispatch("/x", [("f", 1.5), ("s", "y")]) is True
    assert calls == [(42, "x"), (1.5, "y")]


def test_type_mismatch_is_not_handled_and_not_invoked(registry):
    calls = _recorder(registry, specs=[argument("n", "number"), argument("s", "string")])
    dispatcher = Dispatcher(registry)

    assert dispatcher.dispatch("/x", ["42", "x"]) is False
    assert calls == []
    assert dispatcher.rejections()[-1]["reason"] == TYPE_MISMATCH


def test_wrong_arity_is_not_handled(registry):
    calls = _recorder(registry, specs=[argument("n", "number")])
    dispatcher = Dispatcher(registry)

    assert dispatcher.dispatch("/x", []) is False
    assert dispatcher.dispatch("/x", [1, 2]) is False
    assert calls == []
    assert {r["reason"] for r in dispatcher.rejections()} == {ARITY_MISMATCH}


def test_unknown_pattern_is_not_handled(registry, capsys):
    calls = _recorder(registry)
    dispatcher = Dispatcher(registry)

    assert dispatcher.dispatch("/nope", []) is False
    assert calls == []
    rejection = dispatcher.rejections()[-1]
    assert rejection["reason"] == UNKNOWN_PATTERN
    assert "REJECTED OSC message '/nope' (unknown_pattern)" in capsys.readouterr().err


def test_unencodable_argument_is_rejected_without_raising(registry):
    _recorder(registry, specs=[argument("s", "string")])
    dispatcher = Dispatcher(registry)

    assert dispatcher.dispatch("/x", [object()]) is False
    assert dispatcher.rejections()[-1]["reason"] == INVALID_ARGUMENTS


def test_non_string_pattern_is_rejected(registry):
    dispatcher = Dispatcher(registry)
    assert dispatcher.dispatch(["/x"], []) is False


def test_handler_failure_is_contained(registry, capsys):
    def explode():
        raise RuntimeError("boom")

    registry.register("/explode", handler=explode)
    calls = _recorder(registry, pattern="/after")
    dispatcher = Dispatcher(registry)

    assert dispatcher.dispatch("/explode", []) is True
    err = capsys.readouterr().err
    assert "*** OSC action '/explode' failed: RuntimeError: boom" in err
    assert "Traceback" in err

    assert dispatcher.dispatch("/after", []) is True
    assert calls == [()]


def test_rejection_log_is_bounded_and_quiet_when_disabled(registry, capsys):
    dispatcher = Dispatcher(registry, log_rejections=False, rejection_log_size=3)
    for i in range(5):
        dispatcher.dispatch(f"/unknown/{i}", [])

    assert capsys.readouterr().err == ""
    assert [r["pattern"] for r in dispatcher.rejections()] == ["/unknown/2", "/unknown/3", "/unknown/4"]
    assert [r["pattern"] for r in dispatcher.rejections(limit=1)] == ["/unknown/4"]
    assert dispatcher.clear_rejections() == 3
    assert dispatcher.rejections() == []


def test_hand_built_message_with_plain_values(registry):
    calls = _recorder(registry, specs=[argument("n", "number"), argument("s", "string")])
    dispatcher = Dispatcher(registry)

    assert dispatcher.dispatch_message(IncomingMessage("/x", (42, "y"))) is True
    assert dispatcher.dispatch_message(IncomingMessage("/x", ("42", "y"))) is False
    assert dispatcher.dispatch_message(IncomingMessage("/x", (object(), "y"))) is False
    assert calls == [(42, "y")]
    assert dispatcher.rejections()[-1]["reason"] == INVALID_ARGUMENTS
