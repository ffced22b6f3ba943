"""Interactive console for the OSC action service.

Each line is one message, pattern first, then its arguments:

    /transport/bpm 140
    /evaluate "song().transport.lpb = 8"

Lines starting with '=' are evaluated in the sandbox and the result printed:

    = song().transport.bpm
"""

from __future__ import annotations

import shlex
from typing import Any, List, Tuple

from osc_actions import DummyHost, OscActionService


def parse_token(token: str) -> Any:
    """Turn a console token into a number, boolean, None or string."""
    lowered = token.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered in ("nil", "none"):
        return None
    try:
        return int(token)
    except ValueError:
        pass
    try:
        return float(token)
    except ValueError:
        return token


def parse_command(line: str) -> Tuple[str, List[Any]]:
    """Split a console line into a pattern and its argument values.

    Quoted tokens always stay strings, so '"42"' sends the string "42".
    """
    tokens = shlex.split(line.strip(), posix=False)
    if not tokens:
        return "", []
    values: List[Any] = []
    for raw in tokens[1:]:
        if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
            values.append(raw[1:-1])
        else:
            values.append(parse_token(raw))
    return tokens[0], values


def main() -> None:
    """Run the console against an in-memory host."""
    with OscActionService(DummyHost()) as service:
        print("OSC actions console. Ctrl-C to quit.\n")
        for entry in service.available_messages():
            args = ", ".join(entry["arguments"])
            print(f"  {entry['name']}({args})")
        print()

        while True:
            try:
                line = input("osc> ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\nBye.")
                break
            if not line:
                continue
            if line.startswith("="):
                ok, value = service.evaluate(line[1:].strip())
                print(value if ok else f"[Error] {value}")
                continue
            try:
                pattern, values = parse_command(line)
            except ValueError as exc:
                print(f"[Error] {exc}")
                continue
            handled = service.dispatch(pattern, values)
            print("handled" if handled else "REJECTED")


if __name__ == "__main__":
    main()
