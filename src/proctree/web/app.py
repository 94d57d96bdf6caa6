"""Flask application factory for the proctree web API.

``create_app`` seeds an engine and returns a Flask app whose routes are
thin wrappers around engine calls:

- ``GET /api/processes`` — snapshot (``?view=fds`` adds a text tree).
- ``GET /api/processes/<pid>`` — one process and its children.
- ``POST /api/fork`` / ``/api/exec`` / ``/api/terminate`` /
  ``/api/kill-parent`` — lifecycle operations, body ``{"pid": n}``.
- ``POST /api/tick`` — advance the clock, body ``{"ticks": n}``.
- ``POST /api/demo`` — run the scripted walkthrough.
- ``GET /api/status`` — orphan/zombie counters and pending reclamations.
- ``GET /api/log`` — recent event log entries.

Engine errors map to HTTP status codes: no such process → 404,
forbidden / no killable parent → 403, wrong state → 409.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from flask import Flask, Response, jsonify, request

from proctree.demo import DemoRunner
from proctree.engine import LifecycleEngine
from proctree.errors import (
    DemoAbortedError,
    ForbiddenError,
    NoKillableParentError,
    NoSuchProcessError,
    ProcessError,
    ProcessStateError,
)
from proctree.topology import DEFAULT_TOPOLOGY, SeedProcess
from proctree.views import TextDisplay, ViewMode, render_tree

_HTTP_BAD_REQUEST = 400
_HTTP_FORBIDDEN = 403
_HTTP_NOT_FOUND = 404
_HTTP_CONFLICT = 409
_DEFAULT_LOG_LINES = 50

type _JsonResponse = tuple[Response, int] | Response


def _error_status(error: ProcessError) -> int:
    """Return the HTTP status code for an engine error."""
    match error:
        case NoSuchProcessError():
            return _HTTP_NOT_FOUND
        case ForbiddenError() | NoKillableParentError():
            return _HTTP_FORBIDDEN
        case ProcessStateError() | DemoAbortedError():
            return _HTTP_CONFLICT
        case _:
            return _HTTP_BAD_REQUEST


def _int_field(data: dict[str, Any] | None, name: str) -> int | None:
    """Return ``data[name]`` if it is an int (bools excluded), else None."""
    if data is None:
        return None
    value = data.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def create_app(
    *,
    engine: LifecycleEngine | None = None,
    topology: Sequence[SeedProcess] = DEFAULT_TOPOLOGY,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        engine: An already-seeded engine to serve.  If omitted a new one
            is created and seeded with *topology*.
        topology: Starting processes for a new engine.

    Returns:
        A configured Flask application ready to serve.

    """
    if engine is None:
        engine = LifecycleEngine()
        engine.seed(topology)
    display = TextDisplay()
    demo = DemoRunner(engine, display=display)

    app = Flask(__name__)

    @app.errorhandler(ProcessError)
    def process_error(error: ProcessError) -> tuple[Response, int]:  # pyright: ignore[reportUnusedFunction]
        """Turn an engine rejection into a JSON error."""
        return jsonify({"error": str(error), "kind": type(error).__name__}), _error_status(error)

    def _require_pid() -> int | tuple[Response, int]:
        pid = _int_field(request.get_json(silent=True), "pid")
        if pid is None:
            return jsonify({"error": "Missing or non-integer 'pid' field"}), _HTTP_BAD_REQUEST
        return pid

    @app.route("/api/processes")
    def processes() -> _JsonResponse:  # pyright: ignore[reportUnusedFunction]
        """Return every process, plus a text tree in the requested view."""
        view = request.args.get("view", str(display.mode))
        try:
            mode = ViewMode(view)
        except ValueError:
            return jsonify({"error": f"Unknown view mode {view!r}"}), _HTTP_BAD_REQUEST
        snapshot = engine.snapshot()
        return jsonify(
            {
                "now": engine.now,
                "view": str(mode),
                "processes": [p.to_dict() for p in snapshot],
                "tree": render_tree(snapshot, mode),
            }
        )

    @app.route("/api/processes/<int:pid>")
    def process_detail(pid: int) -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return one process and its children."""
        info = engine.get(pid).to_dict()
        info["children"] = [c.to_dict() for c in engine.children_of(pid)]
        return jsonify(info)

    @app.route("/api/fork", methods=["POST"])
    def fork() -> _JsonResponse:  # pyright: ignore[reportUnusedFunction]
        """Fork a child from ``pid``."""
        pid = _require_pid()
        if not isinstance(pid, int):
            return pid
        data = request.get_json(silent=True) or {}
        name = data.get("name")
        child = engine.spawn(pid, name=name if isinstance(name, str) else None)
        return jsonify(child.to_dict())

    @app.route("/api/exec", methods=["POST"])
    def exec_() -> _JsonResponse:  # pyright: ignore[reportUnusedFunction]
        """Replace the image of ``pid`` (random program unless ``name`` given)."""
        pid = _require_pid()
        if not isinstance(pid, int):
            return pid
        data = request.get_json(silent=True) or {}
        name = data.get("name")
        if name is None:
            return jsonify(engine.exec_image(pid).to_dict())
        fds = data.get("file_descriptors", [])
        if not isinstance(name, str) or not isinstance(fds, list):
            return jsonify({"error": "'name' must be a string and 'file_descriptors' a list"}), (
                _HTTP_BAD_REQUEST
            )
        if not all(isinstance(fd, int) and not isinstance(fd, bool) for fd in fds):
            return jsonify({"error": "File descriptors must be integers"}), _HTTP_BAD_REQUEST
        return jsonify(engine.image_replace(pid, name, fds).to_dict())

    @app.route("/api/terminate", methods=["POST"])
    def terminate() -> _JsonResponse:  # pyright: ignore[reportUnusedFunction]
        """Terminate ``pid``."""
        pid = _require_pid()
        if not isinstance(pid, int):
            return pid
        return jsonify(engine.terminate(pid).to_dict())

    @app.route("/api/kill-parent", methods=["POST"])
    def kill_parent() -> _JsonResponse:  # pyright: ignore[reportUnusedFunction]
        """Terminate the parent of ``pid``."""
        pid = _require_pid()
        if not isinstance(pid, int):
            return pid
        return jsonify(engine.kill_parent_of(pid).to_dict())

    @app.route("/api/tick", methods=["POST"])
    def tick() -> _JsonResponse:  # pyright: ignore[reportUnusedFunction]
        """Advance the clock by ``ticks`` (default 1)."""
        data = request.get_json(silent=True)
        ticks = 1
        if data is not None and "ticks" in data:
            parsed = _int_field(data, "ticks")
            if parsed is None or parsed < 0:
                return jsonify({"error": "'ticks' must be a non-negative integer"}), (
                    _HTTP_BAD_REQUEST
                )
            ticks = parsed
        reaped = engine.reaper.advance(ticks)
        return jsonify({"now": engine.now, "reaped": reaped})

    @app.route("/api/demo", methods=["POST"])
    def run_demo() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Run the scripted walkthrough and return what it did."""
        result = demo.run_demo()
        return jsonify(
            {
                "now": engine.now,
                "shell_pid": result.shell_pid,
                "child_pid": result.child_pid,
                "report": result.report.to_dict() if result.report is not None else None,
                "completed": result.completed,
                "messages": display.drain(),
                "view": str(display.mode),
            }
        )

    @app.route("/api/status")
    def status() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return orphan/zombie counters and pending reclamations."""
        current = engine.status()
        return jsonify(
            {
                "now": engine.now,
                "orphaned": list(current.orphaned),
                "zombies": list(current.zombies),
                "pending": [{"pid": pid, "due": due} for pid, due in engine.reaper.pending],
                "text": str(current),
            }
        )

    @app.route("/api/log")
    def log() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the most recent event log lines."""
        count = request.args.get("lines", default=_DEFAULT_LOG_LINES, type=int)
        return jsonify({"entries": [str(e) for e in engine.logger.tail(count)]})

    return app


def main() -> None:
    """Run the web API development server.

    This is the ``proctree-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
