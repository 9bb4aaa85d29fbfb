"""Counts each input file once; some reduces are slow, to catch early worker exits."""

from __future__ import annotations

import time

from distlab.mr.worker import KeyValue


def map_func(filename: str, contents: str) -> list[KeyValue]:
    """Emit one record per input file."""
    return [KeyValue(filename, "1")]


def reduce_func(key: str, values: list[str]) -> str:
    """Return the number of records for the file, sleeping for some keys."""
    if "sherlock" in key or "tom" in key:
        time.sleep(3)
    return str(len(values))