"""MapReduce coordinator: hands out map then reduce tasks and tracks completion."""

from __future__ import annotations

import contextlib
import dataclasses
import enum
import json
import os
import socketserver
import threading
import time
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

MAP_TIMEOUT = 15.0
REDUCE_TIMEOUT = 10.0


class TaskStatus(enum.Enum):
    TODO = 0
    DOING = 1
    DONE = 2


class _Phase(enum.Enum):
    MAP = 0
    REDUCE = 1
    DONE = 2


@dataclass
class _Task:
    filename: str = ""
    status: TaskStatus = TaskStatus.TODO
    assigned_at: float = 0.0


class _Handler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        for line in self.rfile:
            response = self.server.coordinator._dispatch(line)  # type: ignore[attr-defined]
            self.wfile.write(json.dumps(response).encode() + b"\n")
            self.wfile.flush()


class Coordinator:
    """Tracks tasks; ids are 1-based, 0 means no task."""

    def __init__(
        self,
        files: list[str],
        n_reduce: int,
        sock_path: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = threading.Lock()
        self._phase = _Phase.MAP
        self._map_tasks = [_Task(filename=f) for f in files]
        self._reduce_tasks: list[_Task] = []
        self._n_reduce = n_reduce
        self._clock = clock
        self.sock_path = sock_path or coordinator_sock()
        self._server: Optional[socketserver.ThreadingUnixStreamServer] = None

    def _fetch(self, tasks: list[_Task], timeout: float) -> tuple[int, int]:
        """Return (id of an assignable task or 0, number of tasks not done)."""
        left = len(tasks)
        for task_id, task in enumerate(tasks, 1):
            if task.status is TaskStatus.TODO:
                return task_id, left
            if task.status is TaskStatus.DOING:
                if self._clock() - task.assigned_at > timeout:
                    task.status = TaskStatus.TODO
                    return task_id, left
            else:
                left -= 1
        return 0, left

    def _start(self, task: _Task) -> None:
        task.status = TaskStatus.DOING
        task.assigned_at = self._clock()

    def request_task(self) -> TaskAssignment:
        assignment = TaskAssignment(x=len(self._map_tasks), y=self._n_reduce)
        with self._lock:
            x = y = 0
            if self._phase is _Phase.MAP:
                x, left = self._fetch(self._map_tasks, MAP_TIMEOUT)
                if not x and left == 0:
                    self._phase = _Phase.REDUCE
                    self._reduce_tasks = [_Task() for _ in range(self._n_reduce)]
            if self._phase is _Phase.REDUCE:
                y, left = self._fetch(self._reduce_tasks, REDUCE_TIMEOUT)
                if not y and left == 0:
                    self._phase = _Phase.DONE
            if self._phase is _Phase.DONE:
                assignment.task_type = TaskType.EXIT
                return assignment
            if x:
                task = self._map_tasks[x - 1]
                assignment.task_type = TaskType.MAP
                assignment.filename = task.filename
                assignment.lower_x = x
                self._start(task)
            elif y:
                assignment.task_type = TaskType.REDUCE
                assignment.lower_y = y
                self._start(self._reduce_tasks[y - 1])
            return assignment

    @staticmethod
    def _lookup(tasks: list[_Task], task_id: int, kind: str) -> _Task:
        if not 1 <= task_id <= len(tasks):
            raise ValueError(f"no {kind} task {task_id}")
        return tasks[task_id - 1]

    def response_task(self, completion: TaskCompletion) -> None:
        with self._lock:
            if completion.lower_x:
                task = self._lookup(self._map_tasks, completion.lower_x, "map")
                if task.status is not TaskStatus.DONE:
                    task.status = TaskStatus.DONE
                    return
            if completion.lower_y:
                task = self._lookup(self._reduce_tasks, completion.lower_y, "reduce")
                if task.status is not TaskStatus.DONE:
                    task.status = TaskStatus.DONE

    def done(self) -> bool:
        with self._lock:
            return self._phase is _Phase.DONE

    def example(self, args: ExampleArgs) -> ExampleReply:
        return ExampleReply(y=args.x + 1)

    def _dispatch(self, line: bytes) -> dict[str, Any]:
        try:
            request = json.loads(line)
            method = request["method"]
            args = request.get("args") or {}
            if method == "Coordinator.RequestTask":
                reply: Any = self.request_task()
            elif method == "Coordinator.ResponseTask":
                reply = self.response_task(TaskCompletion(**args))
            elif method == "Coordinator.Example":
                reply = self.example(ExampleArgs(**args))
            else:
                raise ValueError(f"unknown method {method}")
        except (ValueError, KeyError, TypeError) as exc:
            return {"ok": False, "error": str(exc)}
        return {"ok": True, "reply": dataclasses.asdict(reply) if reply is not None else {}}

    def serve(self) -> None:
        """Listen for worker requests on the UNIX socket in a background thread."""
        with contextlib.suppress(FileNotFoundError):
            os.remove(self.sock_path)
        server = socketserver.ThreadingUnixStreamServer(self.sock_path, _Handler)
        server.daemon_threads = True
        server.coordinator = self  # type: ignore[attr-defined]
        self._server = server
        threading.Thread(target=server.serve_forever, daemon=True).start()

    def shutdown(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        with contextlib.suppress(FileNotFoundError):
            os.remove(self.sock_path)

    def __enter__(self) -> Coordinator:
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()


def make_coordinator(files: list[str], n_reduce: int) -> Coordinator:
    """Create a coordinator and start serving workers."""
    coordinator = Coordinator(files, n_reduce)
    coordinator.serve()
    return coordinator