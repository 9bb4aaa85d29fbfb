"""Simulated RPC network, linearizability checker and MapReduce framework."""

__version__ = "0.1.0"