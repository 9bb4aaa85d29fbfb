"""Messages exchanged between MapReduce workers and the coordinator."""

from __future__ import annotations

import enum
import os
from dataclasses import dataclass


@dataclass
class ExampleArgs:
    x: int = 0


@dataclass
class ExampleReply:
    y: int = 0


class TaskType(enum.IntEnum):
    NONE = 0
    MAP = 1
    REDUCE = 2
    EXIT = -99


@dataclass
class TaskAssignment:
    """A task for a worker; x is the number of input files, y is nReduce."""

    task_type: TaskType = TaskType.NONE
    filename: str = ""
    lower_x: int = 0
    lower_y: int = 0
    x: int = 0
    y: int = 0

    def __post_init__(self) -> None:
        self.task_type = TaskType(self.task_type)


@dataclass
class TaskCompletion:
    lower_x: int = 0
    lower_y: int = 0


def coordinator_sock() -> str:
    """Return the UNIX-domain socket path for this user's coordinator."""
    return f"/var/tmp/5840-mr-{os.getuid()}"