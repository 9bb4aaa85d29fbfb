# distlab

A toolkit for building and testing distributed systems in Python:

- **`distlab.labrpc`**: an in-process, simulated RPC network. Client
  end-points talk to named servers. The network can drop, delay and reorder
  messages, disconnect individual end-points and delete servers, so
  fault-tolerant code can be exercised inside a test.
- **`distlab.labgob`**: the pickle-based encoder and decoder that carries RPC
  arguments and replies. It reports dataclass fields whose names start with
  an underscore, and decoding into an object that already holds non-default
  values.
- **`distlab.porcupine`**: a linearizability checker. Describe a system as a
  `Model`, record a history of `Operation`s or `Event`s, and ask whether the
  history is linearizable.
- **`distlab.models.kv`**: a ready-made model (`KV_MODEL`) of a key/value store
  with get, put and append, partitioned by key.
- **`distlab.mr`**: a MapReduce coordinator and worker that talk over a UNIX
  domain socket, with applications in `distlab.mrapps`.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## The simulated RPC network

```python
from distlab.labrpc import Network, Server, Service, RpcError

class Echo:
    def shout(self, text):
        return text.upper()

with Network() as net:
    end = net.make_end("end1")
    server = Server()
    server.add_service(Service(Echo()))
    net.add_server("s1", server)
    net.connect("end1", "s1")
    net.enable("end1", True)
    print(end.call("Echo.shout", "hi"))   # "HI"
```

A `Service` exposes the public methods of an object that can be called with
one argument. `ClientEnd.call` returns the handler's reply, or raises
`RpcError` when the request or reply was lost, the end-point is disabled or
unconnected, or the server was deleted with `Network.delete_server`.
`Network.reliable(False)` makes the network drop and delay messages;
`long_delays` and `long_reordering` add longer pauses. `get_count`,
`get_total_count` and `get_total_bytes` report traffic statistics.

## Checking linearizability

```python
from distlab.models.kv import KV_MODEL, KvInput, KvOutput, KvOp
from distlab.porcupine.checker import check_operations
from distlab.porcupine.model import Operation

history = [
    Operation(input=KvInput(KvOp.PUT, "x", "1"), call_time=0,
              output=KvOutput(), return_time=10, client_id=0),
    Operation(input=KvInput(KvOp.GET, "x"), call_time=20,
              output=KvOutput("1"), return_time=30, client_id=1),
]
print(check_operations(KV_MODEL, history))   # True
```

`check_operations_timeout` and `check_operations_verbose` take a timeout in
seconds (0 means none) and return a `CheckResult`: `OK`, `ILLEGAL`, or
`UNKNOWN` when the timeout cut the search short. The verbose form also
returns a `LinearizationInfo` with the longest linearizable prefixes found.
`check_events`, `check_events_timeout` and `check_events_verbose` do the same
for histories of `Event`s.

## MapReduce

An application is a pair of functions:

- `map_func(filename, contents)` returns a list of `KeyValue` pairs
  (`distlab.mr.worker.KeyValue`);
- `reduce_func(key, values)` returns the output string for one key.

The included applications are `wc`, `indexer`, `crash`, `nocrash`,
`early_exit` and `rtiming` in `distlab.mrapps`.

Start a coordinator from Python with `make_coordinator(files, n_reduce)`. It
listens on the socket given by `distlab.mr.rpc.coordinator_sock()` and hands
out one map task per input file, then `n_reduce` reduce tasks. A map task not
reported finished within 15 seconds, or a reduce task within 10 seconds, is
handed out again. `Coordinator.done()` tells when every task is finished.

In each worker process, call `distlab.mr.worker.worker(map_func, reduce_func)`.
It connects to the coordinator's socket, or to the path in the environment
variable `DISTLAB_MR_SOCKET` when that is set, and runs tasks until the
coordinator tells it to exit. Map tasks write intermediate files `mr-X-Y` as
JSON lines; reduce task `Y` writes `mr-out-(Y-1)`. Keys are assigned to
reduce tasks with `distlab.mr.worker.ihash`.

`run_map_task` and `run_reduce_task` can also be called directly to run a
single task in the current directory.

## What the package does not do

The package installs no commands. There is no ready-made program that starts
a coordinator, starts a worker or runs a whole job in a single process;
applications are loaded by importing their module and passing its
`map_func` and `reduce_func` to `worker`.