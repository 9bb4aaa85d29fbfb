from unittest import mock

from distlab.mr.worker import KeyValue
from distlab.mrapps.early_exit import map_func, reduce_func


def test_map_emits_filename_once():
    assert map_func("pg-grimm.txt", "lots of words here") == [KeyValue("pg-grimm.txt", "1")]


def test_reduce_counts_without_sleeping():
    with mock.patch("time.sleep") as sleep_mock:
        result = reduce_func("pg-grimm.txt", ["1", "1"])
    assert result == "2"
    assert sleep_mock.call_count == 0


def test_reduce_sleeps_for_sherlock():
    with mock.patch("time.sleep") as sleep_mock:
        result = reduce_func("pg-sherlock_holmes.txt", ["1"])
    sleep_mock.assert_called_once_with(3)
    assert int(result) == 1


def test_reduce_sleeps_for_tom():
    with mock.patch("time.sleep") as sleep_mock:
        result = reduce_func("pg-tom_sawyer.txt", ["1", "1", "1"])
    assert result == "3"
    assert sleep_mock.call_args_list == [mock.call(3)]