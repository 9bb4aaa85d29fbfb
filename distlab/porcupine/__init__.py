"""Linearizability checking of concurrent operation histories."""