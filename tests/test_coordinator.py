import json
import socket

import pytest

from distlab.mr.coordinator import Coordinator
from distlab.mr.rpc import ExampleArgs, TaskCompletion, TaskType


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def make(files, n_reduce):
    clock = FakeClock()
    return Coordinator(files, n_reduce, sock_path="unused", clock=clock), clock


def test_full_job():
    c, _ = make(["a.txt", "b.txt"], 2)
    t1 = c.request_task()
    t2 = c.request_task()
    assert (t1.task_type, t1.lower_x, t1.filename) == (TaskType.MAP, 1, "a.txt")
    assert (t2.task_type, t2.lower_x, t2.filename) == (TaskType.MAP, 2, "b.txt")
    assert (t1.x, t1.y) == (2, 2)
    assert c.request_task().task_type is TaskType.NONE

    c.response_task(TaskCompletion(lower_x=1))
    c.response_task(TaskCompletion(lower_x=2))
    r1 = c.request_task()
    r2 = c.request_task()
    assert (r1.task_type, r1.lower_y) == (TaskType.REDUCE, 1)
    assert (r2.task_type, r2.lower_y) == (TaskType.REDUCE, 2)
    assert not c.done()

    c.response_task(TaskCompletion(lower_y=1))
    c.response_task(TaskCompletion(lower_y=2))
    assert c.request_task().task_type is TaskType.EXIT
    assert c.done()


def test_map_task_reassigned_after_timeout():
    c, clock = make(["a.txt"], 1)
    assert c.request_task().lower_x == 1
    clock.now = 10.0
    assert c.request_task().task_type is TaskType.NONE
    clock.now = 16.0
    again = c.request_task()
    assert again.task_type is TaskType.MAP and again.lower_x == 1


def test_reduce_task_reassigned_after_timeout():
    c, clock = make(["a.txt"], 1)
    c.request_task()
    c.response_task(TaskCompletion(lower_x=1))
    assert c.request_task().lower_y == 1
    clock.now = 11.0
    again = c.request_task()
    assert again.task_type is TaskType.REDUCE and again.lower_y == 1


def test_no_inputs_goes_straight_to_reduce():
    c, _ = make([], 1)
    assert c.request_task().task_type is TaskType.REDUCE


def test_unknown_task_id():
    c, _ = make(["a.txt"], 1)
    with pytest.raises(ValueError):
        c.response_task(TaskCompletion(lower_x=5))


def test_example():
    c, _ = make([], 1)
    assert c.example(ExampleArgs(x=99)).y == 100


def test_serve_answers_over_socket(tmp_path):
    path = str(tmp_path / "c.sock")
    with Coordinator(["a.txt"], 1, sock_path=path) as c:
        c.serve()
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as s:
            s.connect(path)
            f = s.makefile("rwb")
            f.write(json.dumps({"method": "Coordinator.Example", "args": {"x": 99}}).encode() + b"\n")
            f.flush()
            reply = json.loads(f.readline())
            f.write(json.dumps({"method": "Coordinator.RequestTask"}).encode() + b"\n")
            f.flush()
            task = json.loads(f.readline())
    assert reply == {"ok": True, "reply": {"y": 100}}
    assert task["reply"]["filename"] == "a.txt"
    assert task["reply"]["task_type"] == TaskType.MAP