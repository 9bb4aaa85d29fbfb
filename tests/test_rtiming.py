import os
from unittest import mock

from distlab.mrapps.rtiming import map_func, nparallel, reduce_func


def test_map_emits_ten_keys():
    kvs = map_func("f", "ignored")
    assert [kv.key for kv in kvs] == list("abcdefghij")
    assert {kv.value for kv in kvs} == {"1"}


def test_reduce_reports_parallel_reducers(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / f"mr-worker-map-{os.getpid()}").write_text("x")
    with mock.patch("time.sleep"):
        assert reduce_func("a", ["1"]) == "1"
    assert not (tmp_path / f"mr-worker-reduce-{os.getpid()}").exists()


def test_nparallel_for_reduce_phase(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with mock.patch("time.sleep"):
        assert nparallel("reduce") >= 1