"""Records how many reduce tasks run at once, to check workers overlap."""

from __future__ import annotations

import os
import re
import time
from pathlib import Path

from distlab.mr.worker import KeyValue


def _alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except OSError:
        return False
    return True


def nparallel(phase: str) -> int:
    """Count the workers currently running the given phase, this one included."""
    marker = Path(f"mr-worker-{phase}-{os.getpid()}")
    marker.write_text("x")

    pattern = re.compile(rf"mr-worker-{re.escape(phase)}-([+-]?\d+)")
    running = 0
    for name in os.listdir("."):
        match = pattern.match(name)
        if match and _alive(int(match.group(1))):
            running += 1

    time.sleep(1)
    marker.unlink()
    return running


def map_func(filename: str, contents: str) -> list[KeyValue]:
    return [KeyValue(key, "1") for key in "abcdefghij"]


def reduce_func(key: str, values: list[str]) -> str:
    return str(nparallel("reduce"))