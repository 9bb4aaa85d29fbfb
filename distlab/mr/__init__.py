"""MapReduce coordinator, worker and their RPC definitions."""