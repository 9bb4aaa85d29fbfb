"""Pickle-based encoder and decoder that warn about fields that will not travel well.

Dataclass fields whose names start with an underscore are treated as private
and reported, once per class, because RPC and persisted state should only
carry public fields.  Decoding into an object that already holds non-default
values is reported as well.  As with the original wire format, a decoded
field holding its type's zero value does not overwrite the target.
"""

from __future__ import annotations

import dataclasses
import pickle
import threading
from typing import Any, BinaryIO

_lock = threading.Lock()
_error_count = 0
_checked: set[type] = set()
_names: dict[str, type] = {}
_types: dict[type, str] = {}

_PRIMITIVES = (bool, int, float, str)


def error_count() -> int:
    """Return how many problems have been reported so far."""
    with _lock:
        return _error_count


def _bump() -> int:
    global _error_count
    with _lock:
        before = _error_count
        _error_count += 1
        return before


def _is_instance(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _check_value(value: Any, seen: set[int] | None = None) -> None:
    if seen is None:
        seen = set()
    if id(value) in seen:
        return
    if _is_instance(value):
        seen.add(id(value))
        cls = type(value)
        with _lock:
            first = cls not in _checked
            _checked.add(cls)
        if first:
            for field in dataclasses.fields(cls):
                if field.name.startswith("_"):
                    print(
                        f"labgob error: private field {field.name} of {cls.__name__} "
                        "in RPC or persist/snapshot will break your Raft"
                    )
                    _bump()
        for field in dataclasses.fields(cls):
            _check_value(getattr(value, field.name), seen)
    elif isinstance(value, dict):
        seen.add(id(value))
        for key, item in value.items():
            _check_value(key, seen)
            _check_value(item, seen)
    elif isinstance(value, (list, tuple, set, frozenset)):
        seen.add(id(value))
        for item in value:
            _check_value(item, seen)


def _check_default(value: Any, depth: int = 1, name: str = "") -> None:
    if depth > 3 or value is None:
        return
    if _is_instance(value):
        for field in dataclasses.fields(value):
            inner = f"{name}.{field.name}" if name else field.name
            _check_default(getattr(value, field.name), depth + 1, inner)
    elif isinstance(value, _PRIMITIVES) and value != type(value)():
        if _bump() < 1:
            what = name or type(value).__name__
            print(f"labgob warning: Decoding into a non-default variable/field {what} may not work")


def _is_zero(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, _PRIMITIVES):
        return value == type(value)()
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return len(value) == 0
    return False


class LabEncoder:
    """Writes values to a binary stream, one after another."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def encode(self, value: Any) -> None:
        _check_value(value)
        pickle.dump(value, self._stream, protocol=pickle.HIGHEST_PROTOCOL)


class LabDecoder:
    """Reads values written by LabEncoder from a binary stream."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream

    def decode(self) -> Any:
        """Return the next value; raises EOFError at the end of the stream."""
        value = pickle.load(self._stream)
        _check_value(value)
        return value

    def decode_into(self, target: Any) -> Any:
        """Decode the next value into the dataclass instance target and return it."""
        if not _is_instance(target):
            raise TypeError("decode_into needs a dataclass instance")
        _check_value(target)
        _check_default(target)
        value = self.decode()
        if type(value) is not type(target):
            raise TypeError(
                f"cannot decode {type(value).__name__} into {type(target).__name__}"
            )
        for field in dataclasses.fields(target):
            new = getattr(value, field.name)
            if not _is_zero(new):
                setattr(target, field.name, new)
        return target


def register_name(name: str, value: Any) -> None:
    """Record the type of value under name; a name or type may be bound only once."""
    _check_value(value)
    cls = type(value)
    with _lock:
        existing = _names.get(name)
        if existing is not None and existing is not cls:
            raise ValueError(f"registering duplicate types for {name!r}")
        other = _types.get(cls)
        if other is not None and other != name:
            raise ValueError(f"registering duplicate names for {cls.__name__}")
        _names[name] = cls
        _types[cls] = name


def register(value: Any) -> None:
    """Record the type of value under its qualified name."""
    cls = type(value)
    register_name(f"{cls.__module__}.{cls.__qualname__}", value)