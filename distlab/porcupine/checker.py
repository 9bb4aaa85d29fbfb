"""Linearizability checker for operation and event histories."""

from __future__ import annotations

import enum
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from distlab.porcupine.bitset import Bitset
from distlab.porcupine.model import CheckResult, Event, EventKind, Model, Operation


class _EntryKind(enum.Enum):
    CALL = 0
    RETURN = 1


@dataclass
class _Entry:
    kind: _EntryKind
    value: Any
    id: int
    time: int
    client_id: int


@dataclass
class LinearizationInfo:
    """Per-partition entries and the longest linearizable prefixes found."""

    history: list[list[_Entry]] = field(default_factory=list)
    partial_linearizations: list[list[list[int]]] = field(default_factory=list)


def _make_entries(history: list[Operation]) -> list[_Entry]:
    entries: list[_Entry] = []
    for op_id, op in enumerate(history):
        entries.append(_Entry(_EntryKind.CALL, op.input, op_id, op.call_time, op.client_id))
        entries.append(_Entry(_EntryKind.RETURN, op.output, op_id, op.return_time, op.client_id))
    # Calls are ordered before returns when timestamps are equal.
    entries.sort(key=lambda e: (e.time, e.kind is _EntryKind.RETURN))
    return entries


def _renumber(events: list[Event]) -> list[Event]:
    mapping: dict[int, int] = {}
    renumbered = []
    for event in events:
        new_id = mapping.setdefault(event.id, len(mapping))
        renumbered.append(Event(event.client_id, event.kind, event.value, new_id))
    return renumbered


def _convert_entries(events: list[Event]) -> list[_Entry]:
    return [
        _Entry(
            _EntryKind.RETURN if event.kind is EventKind.RETURN else _EntryKind.CALL,
            event.value,
            event.id,
            index,
            event.client_id,
        )
        for index, event in enumerate(events)
    ]


class _Node:
    """Doubly linked list node; a call node has its return node as match."""

    __slots__ = ("value", "match", "id", "next", "prev")

    def __init__(self, value: Any, match: Optional[_Node], node_id: int) -> None:
        self.value = value
        self.match = match
        self.id = node_id
        self.next: Optional[_Node] = None
        self.prev: Optional[_Node] = None


def _insert_before(node: _Node, mark: Optional[_Node]) -> _Node:
    if mark is not None:
        before = mark.prev
        mark.prev = node
        node.next = mark
        if before is not None:
            node.prev = before
            before.next = node
    return node


def _length(node: Optional[_Node]) -> int:
    count = 0
    while node is not None:
        node = node.next
        count += 1
    return count


def _make_linked_entries(entries: list[_Entry]) -> Optional[_Node]:
    root: Optional[_Node] = None
    returns: dict[int, _Node] = {}
    for elem in reversed(entries):
        if elem.kind is _EntryKind.RETURN:
            node = _Node(elem.value, None, elem.id)
            returns[elem.id] = node
        else:
            node = _Node(elem.value, returns.get(elem.id), elem.id)
        _insert_before(node, root)
        root = node
    return root


def _lift(node: _Node) -> None:
    node.prev.next = node.next
    node.next.prev = node.prev
    match = node.match
    match.prev.next = match.next
    if match.next is not None:
        match.next.prev = match.prev


def _unlift(node: _Node) -> None:
    match = node.match
    match.prev.next = match
    if match.next is not None:
        match.next.prev = match
    node.prev.next = node
    node.next.prev = node


def _cache_contains(
    model: Model, cache: dict[int, list[tuple[Bitset, Any]]], linearized: Bitset, state: Any
) -> bool:
    return any(
        linearized == seen and model.equal(state, seen_state)
        for seen, seen_state in cache.get(linearized.hash(), ())
    )


def _check_single(
    model: Model, history: list[_Entry], compute_partial: bool, kill: threading.Event
) -> tuple[bool, list[Optional[list[int]]]]:
    entry = _make_linked_entries(history)
    n = _length(entry) // 2
    linearized = Bitset(n)
    cache: dict[int, list[tuple[Bitset, Any]]] = {}
    calls: list[tuple[_Node, Any]] = []
    longest: list[Optional[list[int]]] = [None] * n

    state = model.init()
    head = _insert_before(_Node(None, None, -1), entry)
    while head.next is not None:
        if kill.is_set():
            return False, longest
        if entry.match is not None:
            ok, new_state = model.step(state, entry.value, entry.match.value)
            if ok:
                new_linearized = linearized.copy().set(entry.id)
                if not _cache_contains(model, cache, new_linearized, new_state):
                    cache.setdefault(new_linearized.hash(), []).append((new_linearized, new_state))
                    calls.append((entry, state))
                    state = new_state
                    linearized.set(entry.id)
                    _lift(entry)
                    entry = head.next
                else:
                    entry = entry.next
            else:
                entry = entry.next
        else:
            if not calls:
                return False, longest
            if compute_partial:
                seq: Optional[list[int]] = None
                for node, _ in calls:
                    current = longest[node.id]
                    if current is None or len(calls) > len(current):
                        if seq is None:
                            seq = [n_.id for n_, _ in calls]
                        longest[node.id] = seq
            entry, state = calls.pop()
            linearized.clear(entry.id)
            _unlift(entry)
            entry = entry.next

    # The complete linearization is the longest one for every operation.
    seq = [node.id for node, _ in calls]
    return True, [seq] * n


def _check_parallel(
    model: Model, history: list[list[_Entry]], compute_info: bool, timeout: float
) -> tuple[CheckResult, LinearizationInfo]:
    kill = threading.Event()
    results: queue.SimpleQueue[Any] = queue.SimpleQueue()
    longest: list[list[Optional[list[int]]]] = [[] for _ in history]

    def run(index: int, subhistory: list[_Entry]) -> None:
        try:
            ok, partial = _check_single(model, subhistory, compute_info, kill)
        except BaseException as exc:  # handed to the waiting thread
            results.put(exc)
            return
        longest[index] = partial
        results.put(ok)

    for index, subhistory in enumerate(history):
        threading.Thread(target=run, args=(index, subhistory), daemon=True).start()

    deadline = time.monotonic() + timeout if timeout > 0 else None
    ok = True
    timed_out = False
    count = 0
    while count < len(history):
        try:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                raise queue.Empty
            result = results.get(timeout=remaining)
        except queue.Empty:
            # A timeout may give a false positive.
            timed_out = True
            kill.set()
            break
        count += 1
        if isinstance(result, BaseException):
            kill.set()
            raise result
        ok = ok and result
        if not ok and not compute_info:
            kill.set()
            break

    info = LinearizationInfo()
    if compute_info:
        while count < len(history):
            result = results.get()
            count += 1
            if isinstance(result, BaseException):
                raise result
        partials_by_partition = []
        for partial in longest:
            unique = {id(seq): seq for seq in partial if seq is not None}
            partials_by_partition.append([list(seq) for seq in unique.values()])
        info = LinearizationInfo(history=history, partial_linearizations=partials_by_partition)

    if not ok:
        result_kind = CheckResult.ILLEGAL
    elif timed_out:
        result_kind = CheckResult.UNKNOWN
    else:
        result_kind = CheckResult.OK
    return result_kind, info


def _check_events(
    model: Model, history: list[Event], verbose: bool, timeout: float
) -> tuple[CheckResult, LinearizationInfo]:
    model = model.with_defaults()
    partitions = [_convert_entries(_renumber(sub)) for sub in model.partition_event(history)]
    return _check_parallel(model, partitions, verbose, timeout)


def _check_operations(
    model: Model, history: list[Operation], verbose: bool, timeout: float
) -> tuple[CheckResult, LinearizationInfo]:
    model = model.with_defaults()
    partitions = [_make_entries(sub) for sub in model.partition(history)]
    return _check_parallel(model, partitions, verbose, timeout)


def check_operations(model: Model, history: list[Operation]) -> bool:
    """Return whether the history is linearizable."""
    result, _ = _check_operations(model, history, False, 0)
    return result is CheckResult.OK


def check_operations_timeout(model: Model, history: list[Operation], timeout: float) -> CheckResult:
    """Check with a timeout in seconds (0 means none); a timeout gives UNKNOWN."""
    result, _ = _check_operations(model, history, False, timeout)
    return result


def check_operations_verbose(
    model: Model, history: list[Operation], timeout: float
) -> tuple[CheckResult, LinearizationInfo]:
    """Check and also return the partial linearizations found."""
    return _check_operations(model, history, True, timeout)


def check_events(model: Model, history: list[Event]) -> bool:
    """Return whether the event history is linearizable."""
    result, _ = _check_events(model, history, False, 0)
    return result is CheckResult.OK


def check_events_timeout(model: Model, history: list[Event], timeout: float) -> CheckResult:
    """Check events with a timeout in seconds (0 means none)."""
    result, _ = _check_events(model, history, False, timeout)
    return result


def check_events_verbose(
    model: Model, history: list[Event], timeout: float
) -> tuple[CheckResult, LinearizationInfo]:
    """Check events and also return the partial linearizations found."""
    return _check_events(model, history, True, timeout)