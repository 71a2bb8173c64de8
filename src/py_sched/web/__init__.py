"""Browser-facing JSON API for the simulator.

This package provides a Flask application that runs simulations over
HTTP.  It is an **optional** extra; install with::

    pip install py-sched[web]

The ``create_app`` factory in ``app.py`` serves two endpoints:

- ``GET /api/disciplines``: the registered discipline names.
- ``POST /api/simulate``: run a job list and return the log and metrics.
"""
