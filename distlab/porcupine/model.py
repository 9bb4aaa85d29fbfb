"""Histories, events and the model a history is checked against."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class Operation:
    """A completed operation with its invocation and response times."""

    input: Any = None
    call_time: int = 0
    output: Any = None
    return_time: int = 0
    client_id: int = 0


class EventKind(enum.Enum):
    CALL = False
    RETURN = True


@dataclass
class Event:
    """One call or return, matched to its partner by id."""

    client_id: int = 0
    kind: EventKind = EventKind.CALL
    value: Any = None
    id: int = 0


def no_partition(history: list[Operation]) -> list[list[Operation]]:
    return [history]


def no_partition_event(history: list[Event]) -> list[list[Event]]:
    return [history]


def shallow_equal(state1: Any, state2: Any) -> bool:
    return state1 == state2


def default_describe_operation(input_value: Any, output_value: Any) -> str:
    return f"{input_value} -> {output_value}"


def default_describe_state(state: Any) -> str:
    return f"{state}"


@dataclass
class Model:
    """A sequential specification; step must not mutate the state it is given."""

    partition: Optional[Callable[[list[Operation]], list[list[Operation]]]] = None
    partition_event: Optional[Callable[[list[Event]], list[list[Event]]]] = None
    init: Optional[Callable[[], Any]] = None
    step: Optional[Callable[[Any, Any, Any], tuple[bool, Any]]] = None
    equal: Optional[Callable[[Any, Any], bool]] = None
    describe_operation: Optional[Callable[[Any, Any], str]] = None
    describe_state: Optional[Callable[[Any], str]] = None

    def with_defaults(self) -> Model:
        """Return a copy with every missing optional function filled in."""
        return dataclasses.replace(
            self,
            partition=self.partition or no_partition,
            partition_event=self.partition_event or no_partition_event,
            equal=self.equal or shallow_equal,
            describe_operation=self.describe_operation or default_describe_operation,
            describe_state=self.describe_state or default_describe_state,
        )


class CheckResult(str, enum.Enum):
    UNKNOWN = "Unknown"
    OK = "Ok"
    ILLEGAL = "Illegal"