"""JSON web API for the process tree.

This package provides a Flask application that exposes the lifecycle
engine over HTTP.  It is an **optional** extra — install with::

    pip install proctree[web]

The ``create_app`` factory in ``app.py`` seeds an engine and serves the
process list, the lifecycle operations, the clock, the demo and the
event log as JSON endpoints.
"""
