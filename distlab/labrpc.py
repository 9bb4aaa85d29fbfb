"""Simulated RPC network that can lose, delay and reorder messages.

A Network holds client end-points and servers.  A ClientEnd sends a request
to the server it is connected to.  A Server holds Services, each wrapping an
object whose public one-argument methods handle requests and return replies.
Arguments and replies travel encoded, so no object is shared between caller
and handler.

    net = Network()
    end = net.make_end("end1")
    server = Server()
    server.add_service(Service(handler_object))
    net.add_server("s1", server)
    net.connect("end1", "s1")
    net.enable("end1", True)
    reply = end.call("HandlerClass.method", args)

call() returns the handler's reply, or raises RpcError if the network lost
the request or the reply or the server is down.  Several calls may be in
progress on one ClientEnd at a time and may reach the server out of order.
"""

from __future__ import annotations

import io
import queue
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from distlab.labgob import LabDecoder, LabEncoder

_POLL_INTERVAL = 0.1
_CO_VARARGS = 0x04


class RpcError(Exception):
    """No reply arrived: the request or reply was lost, or the server is gone."""


@dataclass
class _Reply:
    ok: bool
    data: bytes = b""
    error: Optional[BaseException] = None


_FAILED = _Reply(False)


def _encode(value: Any) -> bytes:
    buffer = io.BytesIO()
    LabEncoder(buffer).encode(value)
    return buffer.getvalue()


def _decode(data: bytes) -> Any:
    return LabDecoder(io.BytesIO(data)).decode()


class ClientEnd:
    """A client end-point that talks to one server."""

    def __init__(self, network: Network, endname: Hashable) -> None:
        self._network = network
        self.endname = endname

    def call(self, svc_meth: str, args: Any) -> Any:
        """Send a request such as "Raft.AppendEntries" and return the reply."""
        payload = _encode(args)
        network = self._network
        if network._done.is_set():
            raise RpcError("network has been cleaned up")
        network._count_request(len(payload))
        reply = network._process(self.endname, svc_meth, payload)
        if reply.error is not None:
            raise reply.error
        if not reply.ok:
            raise RpcError(f"no reply to {svc_meth}")
        return _decode(reply.data)


class Network:
    """Holds end-points and servers and carries requests between them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reliable = True
        self._long_delays = False
        self._long_reordering = False
        self._ends: dict[Hashable, ClientEnd] = {}
        self._enabled: dict[Hashable, bool] = {}
        self._servers: dict[Hashable, Optional[Server]] = {}
        self._connections: dict[Hashable, Optional[Hashable]] = {}
        self._done = threading.Event()
        self._stats_lock = threading.Lock()
        self._count = 0
        self._bytes = 0

    def __enter__(self) -> Network:
        return self

    def __exit__(self, *exc: object) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Shut the network down; later calls fail at once."""
        self._done.set()

    def reliable(self, yes: bool) -> None:
        with self._lock:
            self._reliable = yes

    def long_reordering(self, yes: bool) -> None:
        with self._lock:
            self._long_reordering = yes

    def long_delays(self, yes: bool) -> None:
        with self._lock:
            self._long_delays = yes

    def make_end(self, endname: Hashable) -> ClientEnd:
        """Create a disabled, unconnected client end-point."""
        with self._lock:
            if endname in self._ends:
                raise ValueError(f"make_end: {endname!r} already exists")
            end = ClientEnd(self, endname)
            self._ends[endname] = end
            self._enabled[endname] = False
            self._connections[endname] = None
            return end

    def add_server(self, servername: Hashable, server: Server) -> None:
        with self._lock:
            self._servers[servername] = server

    def delete_server(self, servername: Hashable) -> None:
        with self._lock:
            self._servers[servername] = None

    def connect(self, endname: Hashable, servername: Hashable) -> None:
        """Connect a client end-point to a server."""
        with self._lock:
            self._connections[endname] = servername

    def enable(self, endname: Hashable, enabled: bool) -> None:
        with self._lock:
            self._enabled[endname] = enabled

    def get_count(self, servername: Hashable) -> int:
        """Return the number of requests the named server has received."""
        with self._lock:
            server = self._servers.get(servername)
        if server is None:
            raise KeyError(servername)
        return server.get_count()

    def get_total_count(self) -> int:
        with self._stats_lock:
            return self._count

    def get_total_bytes(self) -> int:
        with self._stats_lock:
            return self._bytes

    def _count_request(self, size: int) -> None:
        with self._stats_lock:
            self._count += 1
            self._bytes += size

    def _add_bytes(self, size: int) -> None:
        with self._stats_lock:
            self._bytes += size

    def _read_endname_info(
        self, endname: Hashable
    ) -> tuple[bool, Optional[Hashable], Optional[Server], bool, bool]:
        with self._lock:
            enabled = self._enabled.get(endname, False)
            servername = self._connections.get(endname)
            server = self._servers.get(servername) if servername is not None else None
            return enabled, servername, server, self._reliable, self._long_reordering

    def _is_server_dead(self, endname: Hashable, servername: Hashable, server: Server) -> bool:
        with self._lock:
            return not self._enabled.get(endname, False) or self._servers.get(servername) is not server

    @staticmethod
    def _run(server: Server, svc_meth: str, payload: bytes) -> _Reply:
        try:
            return _Reply(True, server._dispatch(svc_meth, payload))
        except Exception as exc:  # delivered to the caller
            return _Reply(False, error=exc)

    def _process(self, endname: Hashable, svc_meth: str, payload: bytes) -> _Reply:
        enabled, servername, server, reliable, long_reordering = self._read_endname_info(endname)

        if not (enabled and servername is not None and server is not None):
            # No reply, and an eventual timeout.
            with self._lock:
                long_delays = self._long_delays
            limit = 7000 if long_delays else 100
            time.sleep(random.randrange(limit) / 1000)
            return _FAILED

        if not reliable:
            time.sleep(random.randrange(27) / 1000)
            if random.randrange(1000) < 100:
                return _FAILED

        # Run the handler in its own thread so a deleted server can be noticed.
        results: queue.SimpleQueue[_Reply] = queue.SimpleQueue()
        threading.Thread(
            target=lambda: results.put(self._run(server, svc_meth, payload)),
            daemon=True,
        ).start()

        reply: Optional[_Reply] = None
        while reply is None:
            try:
                reply = results.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self._is_server_dead(endname, servername, server):
                    break

        # A deleted server must not reply, even if its handler finished.
        if reply is None or self._is_server_dead(endname, servername, server):
            return _FAILED
        if reply.error is not None:
            return reply
        if not reliable and random.randrange(1000) < 100:
            return _FAILED
        if long_reordering and random.randrange(900) < 600:
            delay = 200 + random.randrange(1 + random.randrange(2000))
            time.sleep(delay / 1000)
        self._add_bytes(len(reply.data))
        return reply


class Server:
    """A set of services sharing one RPC end-point."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._services: dict[str, Service] = {}
        self._count = 0

    def add_service(self, service: Service) -> None:
        with self._lock:
            self._services[service.name] = service

    def get_count(self) -> int:
        with self._lock:
            return self._count

    def _dispatch(self, svc_meth: str, payload: bytes) -> bytes:
        with self._lock:
            self._count += 1
            service_name, dot, method_name = svc_meth.rpartition(".")
            service = self._services.get(service_name)
            choices = sorted(self._services)
        if not dot:
            raise ValueError(f"malformed service method {svc_meth!r}")
        if service is None:
            raise LookupError(
                f"unknown service {service_name} in {svc_meth}; expecting one of {choices}"
            )
        return service._dispatch(method_name, svc_meth, payload)


def _is_handler(method: Callable[..., Any]) -> bool:
    """Tell whether a bound method can be called with exactly one argument."""
    func = getattr(method, "__func__", None)
    code = getattr(func, "__code__", None)
    if code is None:
        return False
    positional = code.co_argcount - 1  # the receiver is already bound
    required = positional - len(func.__defaults__ or ())
    required_kwonly = code.co_kwonlyargcount - len(func.__kwdefaults__ or {})
    takes_one = positional >= 1 or bool(code.co_flags & _CO_VARARGS)
    return takes_one and required <= 1 and required_kwonly == 0


class Service:
    """An object whose public one-argument methods handle requests."""

    def __init__(self, receiver: Any) -> None:
        self.name = type(receiver).__name__
        self._methods: dict[str, Callable[[Any], Any]] = {}
        for attr in dir(type(receiver)):
            if attr.startswith("_"):
                continue
            method = getattr(receiver, attr)
            if callable(method) and _is_handler(method):
                self._methods[attr] = method

    def _dispatch(self, method_name: str, svc_meth: str, payload: bytes) -> bytes:
        method = self._methods.get(method_name)
        if method is None:
            raise LookupError(
                f"unknown method {method_name} in {svc_meth}; "
                f"expecting one of {sorted(self._methods)}"
            )
        return _encode(method(_decode(payload)))