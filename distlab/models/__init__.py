"""Models of replicated services for the linearizability checker."""