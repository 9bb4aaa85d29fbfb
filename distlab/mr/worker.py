"""MapReduce worker: asks the coordinator for tasks and runs them."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import socket
import time
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional

from distlab.mr.rpc import (
    ExampleArgs,
    ExampleReply,
    TaskAssignment,
    TaskCompletion,
    TaskType,
    coordinator_sock,
)

log = logging.getLogger(__name__)

#: Environment variable that, when set, names the coordinator's socket.
SOCKET_ENV = "DISTLAB_MR_SOCKET"

_POLL_INTERVAL = 1.0


@dataclass
class KeyValue:
    """One key/value pair emitted by a map function."""

    key: str
    value: str


MapFunc = Callable[[str, str], list[KeyValue]]
ReduceFunc = Callable[[str, list[str]], str]


def ihash(key: str) -> int:
    """Return the non-negative 32-bit FNV-1a hash of key."""
    h = 0x811C9DC5
    for byte in key.encode():
        h ^= byte
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h & 0x7FFFFFFF


def _bucket(key: str, n_reduce: int) -> int:
    return ihash(key) % n_reduce + 1


def _socket_path() -> str:
    return os.environ.get(SOCKET_ENV) or coordinator_sock()


def _write_intermediate(filename: str, kvs: list[KeyValue]) -> None:
    tmp = filename + ".tmp"
    with open(tmp, "w", encoding="utf-8") as out:
        for kv in kvs:
            record = {"Key": kv.key, "Value": kv.value}
            out.write(json.dumps(record, ensure_ascii=False, separators=(",", ":")) + "\n")
    os.replace(tmp, filename)


def run_map_task(filename: str, x: int, n_reduce: int, mapf: MapFunc) -> list[str]:
    """Map one input file into mr-x-1 .. mr-x-n_reduce; return their names."""
    with open(filename, encoding="utf-8", errors="replace") as source:
        contents = source.read()
    buckets: dict[int, list[KeyValue]] = defaultdict(list)
    for kv in mapf(filename, contents):
        buckets[_bucket(kv.key, n_reduce)].append(kv)
    written = []
    for y in range(1, n_reduce + 1):
        name = f"mr-{x}-{y}"
        _write_intermediate(name, buckets[y])
        written.append(name)
    return written


def run_reduce_task(y: int, n_files: int, reducef: ReduceFunc) -> str:
    """Reduce mr-1-y .. mr-n_files-y into mr-out-(y-1); return its name."""
    grouped: dict[str, list[str]] = defaultdict(list)
    for x in range(1, n_files + 1):
        with open(f"mr-{x}-{y}", encoding="utf-8") as source:
            for line in source:
                if not line.strip():
                    continue
                record = json.loads(line)
                grouped[record["Key"]].append(record["Value"])
    output = f"mr-out-{y - 1}"
    with open(output, "w", encoding="utf-8") as out:
        for key, values in grouped.items():
            out.write(f"{key} {reducef(key, values)}\n")
    return output


def _to_payload(args: Any) -> dict[str, Any]:
    if args is None:
        return {}
    if dataclasses.is_dataclass(args) and not isinstance(args, type):
        return dataclasses.asdict(args)
    if isinstance(args, Mapping):
        return dict(args)
    raise TypeError(f"cannot send {type(args).__name__} as RPC arguments")


def call(rpcname: str, args: Any) -> Optional[dict[str, Any]]:
    """Send one request to the coordinator and return its reply fields.

    Returns None if the coordinator reports an error.  Raises OSError when
    the coordinator cannot be reached.
    """
    request = {"method": rpcname, "args": _to_payload(args)}
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.connect(_socket_path())
        sock.sendall(json.dumps(request).encode() + b"\n")
        with sock.makefile("rb") as stream:
            line = stream.readline()
    if not line:
        print("connection closed by coordinator")
        return None
    response = json.loads(line)
    if not response.get("ok"):
        print(response.get("error"))
        return None
    return response.get("reply") or {}


def call_example() -> Optional[ExampleReply]:
    """Send the example request; the reply's y should be 100."""
    reply = call("Coordinator.Example", ExampleArgs(x=99))
    if reply is None:
        print("call failed!")
        return None
    result = ExampleReply(**reply)
    print(f"reply.Y {result.y}")
    return result


def _each_call(mapf: MapFunc, reducef: ReduceFunc) -> tuple[bool, bool]:
    """Run one request cycle; return (should exit, should wait)."""
    reply = call("Coordinator.RequestTask", None)
    if reply is None:
        return False, True
    task = TaskAssignment(**reply)
    if task.task_type is TaskType.EXIT:
        return True, False
    if task.task_type is TaskType.NONE:
        return False, True
    try:
        if task.task_type is TaskType.MAP:
            run_map_task(task.filename, task.lower_x, task.y, mapf)
            completion = TaskCompletion(lower_x=task.lower_x)
        else:
            run_reduce_task(task.lower_y, task.x, reducef)
            completion = TaskCompletion(lower_y=task.lower_y)
    except (OSError, ValueError, KeyError) as exc:
        log.error("%s", exc)
    else:
        call("Coordinator.ResponseTask", completion)
    return False, False


def worker(mapf: MapFunc, reducef: ReduceFunc) -> None:
    """Run tasks from the coordinator until it says the job is finished."""
    should_exit = should_wait = False
    while not should_exit:
        if should_wait:
            time.sleep(_POLL_INTERVAL)
        should_exit, should_wait = _each_call(mapf, reducef)