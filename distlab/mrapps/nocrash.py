"""The crash application's map and reduce, without the crashes."""

from __future__ import annotations

from distlab.mr.worker import KeyValue


def map_func(filename: str, contents: str) -> list[KeyValue]:
    return [
        KeyValue("a", filename),
        KeyValue("b", str(len(filename.encode()))),
        KeyValue("c", str(len(contents.encode()))),
        KeyValue("d", "xyzzy"),
    ]


def reduce_func(key: str, values: list[str]) -> str:
    # Sorted so the output is deterministic.
    return " ".join(sorted(values))