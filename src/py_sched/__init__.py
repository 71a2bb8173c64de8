"""py-sched: a discrete-event CPU scheduling simulator.

Synthetic process arrivals are replayed against one of five scheduling
disciplines while a virtual clock advances one tick at a time.  Every
admission, executed tick, and completion is recorded in an event log.
"""
