import dataclasses
import io
from typing import Any

import pytest

from distlab import labgob


@dataclasses.dataclass
class T1:
    t1int0: int = 0
    t1int1: int = 0
    t1string0: str = ""
    t1string1: str = ""


@dataclasses.dataclass
class T2:
    t2slice: list = dataclasses.field(default_factory=list)
    t2map: dict = dataclasses.field(default_factory=dict)
    t2t3: Any = None


@dataclasses.dataclass
class T3:
    t3int999: int = 0


@dataclasses.dataclass(frozen=True)
class T4:
    yes: int = 0
    _no: int = 0


@dataclasses.dataclass
class DD:
    x: int = 0


def test_gob_round_trip():
    e0 = labgob.error_count()
    labgob.register(T3())
    buf = io.BytesIO()
    t1 = T1(t1int1=1, t1string1="6.5840")
    t2 = T2(t2slice=[T1(), t1], t2map={99: T1(1, 2, "x", "y")}, t2t3=T3(999))
    enc = labgob.LabEncoder(buf)
    for value in (0, 1, t1, t2):
        enc.encode(value)

    dec = labgob.LabDecoder(io.BytesIO(buf.getvalue()))
    x0, x1, r1, r2 = dec.decode(), dec.decode(), dec.decode(), dec.decode()
    assert x0 == 0
    assert x1 == 1
    assert r1.t1int0 == 0
    assert r1.t1int1 == 1
    assert r1.t1string0 == ""
    assert r1.t1string1 == "6.5840"
    assert len(r2.t2slice) == 2
    assert r2.t2slice[1].t1int1 == 1
    assert len(r2.t2map) == 1
    assert r2.t2map[99].t1string1 == "y"
    assert r2.t2t3.t3int999 == 999
    assert labgob.error_count() == e0


def test_capital():
    e0 = labgob.error_count()
    buf = io.BytesIO()
    labgob.LabEncoder(buf).encode([{T4(yes=1, _no=2): 3}])
    labgob.LabDecoder(io.BytesIO(buf.getvalue())).decode()
    assert labgob.error_count() == e0 + 1


def test_default():
    e0 = labgob.error_count()
    buf = io.BytesIO()
    labgob.LabEncoder(buf).encode(DD())
    reply = DD(99)
    labgob.LabDecoder(io.BytesIO(buf.getvalue())).decode_into(reply)
    assert labgob.error_count() == e0 + 1
    assert reply.x == 99


def test_decode_past_end():
    with pytest.raises(EOFError):
        labgob.LabDecoder(io.BytesIO(b"")).decode()


def test_decode_into_wrong_type():
    buf = io.BytesIO()
    labgob.LabEncoder(buf).encode(T3(5))
    with pytest.raises(TypeError):
        labgob.LabDecoder(io.BytesIO(buf.getvalue())).decode_into(DD())


def test_register_name_conflict():
    labgob.register_name("distlab-test-dd", DD())
    with pytest.raises(ValueError):
        labgob.register_name("distlab-test-dd", T1())