"""An application that sometimes crashes and sometimes stalls, for recovery tests."""

from __future__ import annotations

import os
import secrets
import time

from distlab.mr.worker import KeyValue


def maybe_crash() -> None:
    """Exit the process a third of the time; sleep up to ten seconds another third."""
    roll = secrets.randbelow(1000)
    if roll < 330:
        os._exit(1)
    elif roll < 660:
        time.sleep(secrets.randbelow(10 * 1000) / 1000)


def map_func(filename: str, contents: str) -> list[KeyValue]:
    maybe_crash()
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode()))),
        KeyValue("c", str(len(contents.encode()))),
        KeyValue("d", "xyzzy"),
    ]


def reduce_func(key: str, values: list[str]) -> str:
    maybe_crash()
    # Sorted so the output is deterministic.
    return " ".join(sorted(values))