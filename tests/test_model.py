from distlab.porcupine.model import (
    CheckResult,
    Event,
    Model,
    Operation,
    default_describe_operation,
    default_describe_state,
    no_partition,
    no_partition_event,
    shallow_equal,
)


def test_no_partition_wraps_history():
    ops = [Operation(input=1), Operation(input=2)]
    assert no_partition(ops) == [ops]
    events = [Event(id=0)]
    assert no_partition_event(events) == [events]


def test_shallow_equal():
    assert shallow_equal("a", "a")
    assert not shallow_equal("a", "b")


def test_default_describers():
    assert default_describe_operation("in", "out") == "in -> out"
    assert default_describe_state("s") == "s"


def test_with_defaults_fills_missing():
    model = Model(init=lambda: 0).with_defaults()
    assert model.partition is no_partition
    assert model.partition_event is no_partition_event
    assert model.equal is shallow_equal
    assert model.describe_state is default_describe_state
    assert model.init() == 0


def test_with_defaults_keeps_given():
    def eq(a, b):
        return True

    original = Model(equal=eq)
    filled = original.with_defaults()
    assert filled.equal is eq
    assert original.partition is None


def test_check_result_from_string():
    assert CheckResult("Illegal") is CheckResult.ILLEGAL