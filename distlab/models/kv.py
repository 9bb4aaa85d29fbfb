"""Linearizability model of a key/value store with get, put and append."""

from __future__ import annotations

import enum
from collections import defaultdict
from dataclasses import dataclass

from distlab.porcupine.model import Model, Operation


class KvOp(enum.IntEnum):
    GET = 0
    PUT = 1
    APPEND = 2


@dataclass(frozen=True)
class KvInput:
    op: int
    key: str
    value: str = ""


@dataclass(frozen=True)
class KvOutput:
    value: str = ""


def kv_partition(history: list[Operation]) -> list[list[Operation]]:
    """Split a history by key, in sorted key order."""
    by_key: dict[str, list[Operation]] = defaultdict(list)
    for op in history:
        by_key[op.input.key].append(op)
    return [by_key[key] for key in sorted(by_key)]


def kv_init() -> str:
    # Each partition holds a single key, so the state is one value.
    return ""


def kv_step(state: str, input_value: KvInput, output_value: KvOutput) -> tuple[bool, str]:
    if input_value.op == KvOp.GET:
        return output_value.value == state, state
    if input_value.op == KvOp.PUT:
        return True, input_value.value
    return True, state + input_value.value


def kv_describe_operation(input_value: KvInput, output_value: KvOutput) -> str:
    if input_value.op == KvOp.GET:
        return f"get('{input_value.key}') -> '{output_value.value}'"
    if input_value.op == KvOp.PUT:
        return f"put('{input_value.key}', '{input_value.value}')"
    if input_value.op == KvOp.APPEND:
        return f"append('{input_value.key}', '{input_value.value}')"
    return "<invalid>"


KV_MODEL = Model(
    partition=kv_partition,
    init=kv_init,
    step=kv_step,
    describe_operation=kv_describe_operation,
)