"""MapReduce applications: map and reduce function pairs."""