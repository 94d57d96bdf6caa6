"""Tests for the Flask web API.

Tests use ``pytest.importorskip`` so they are skipped gracefully when
Flask is not installed.
"""

from __future__ import annotations

from typing import Any

import pytest

flask = pytest.importorskip("flask")

from proctree.engine import LifecycleEngine  # noqa: E402
from proctree.topology import SeedProcess  # noqa: E402
from proctree.web.app import create_app  # noqa: E402

HTTP_OK = 200
HTTP_BAD_REQUEST = 400
HTTP_FORBIDDEN = 403
HTTP_NOT_FOUND = 404
HTTP_CONFLICT = 409


def _create_client(**kwargs: Any) -> Any:
    """Create a test client from a fresh app."""
    app = create_app(**kwargs)
    app.config["TESTING"] = True
    return app.test_client()


class TestAppCreation:
    """Verify the app factory."""

    def test_create_app_returns_flask(self) -> None:
        """create_app should return a Flask application."""
        assert isinstance(create_app(), flask.Flask)

    def test_custom_topology(self) -> None:
        """The starting processes come from the caller."""
        client = _create_client(topology=[SeedProcess("init"), SeedProcess("sh", parent="init")])
        names = [p["name"] for p in client.get("/api/processes").get_json()["processes"]]
        assert names == ["init", "sh"]

    def test_given_engine_is_served(self) -> None:
        """An existing engine is used as-is."""
        engine = LifecycleEngine()
        engine.seed([SeedProcess("launchd")])
        client = _create_client(engine=engine)
        assert client.get("/api/processes/1").get_json()["name"] == "launchd"


class TestProcesses:
    """Verify the read endpoints."""

    def test_list(self) -> None:
        """GET /api/processes returns the snapshot and a tree."""
        data = _create_client().get("/api/processes").get_json()
        assert data["now"] == 0
        assert data["view"] == "basic"
        assert [p["pid"] for p in data["processes"]] == [1, 2, 3, 4]
        assert data["processes"][1] == {
            "pid": 2,
            "ppid": 1,
            "name": "bash",
            "status": "running",
            "file_descriptors": [0, 1, 2, 3],
            "environment": {"HOME": "/home/student", "PATH": "/bin:/usr/bin", "USER": "student"},
            "working_directory": "/home/student",
        }
        assert data["tree"].startswith("├─ [1] init (running)")

    def test_list_with_view(self) -> None:
        """?view= selects the tree labels."""
        data = _create_client().get("/api/processes?view=fds").get_json()
        assert "FDs:[0,1,2,5,6]" in data["tree"]

    def test_list_bad_view(self) -> None:
        """An unknown view is a bad request."""
        response = _create_client().get("/api/processes?view=sideways")
        assert response.status_code == HTTP_BAD_REQUEST

    def test_detail_includes_children(self) -> None:
        """GET /api/processes/<pid> lists direct children."""
        data = _create_client().get("/api/processes/2").get_json()
        assert data["name"] == "bash"
        assert [c["pid"] for c in data["children"]] == [3, 4]

    def test_detail_missing(self) -> None:
        """An unknown pid is 404 with the error kind."""
        response = _create_client().get("/api/processes/99")
        assert response.status_code == HTTP_NOT_FOUND
        assert response.get_json()["kind"] == "NoSuchProcessError"


class TestLifecycleEndpoints:
    """Verify fork, exec, terminate and kill-parent."""

    def test_fork(self) -> None:
        """POST /api/fork returns the child."""
        data = _create_client().post("/api/fork", json={"pid": 2, "name": "make"}).get_json()
        assert data["pid"] == 5
        assert data["ppid"] == 2
        assert data["name"] == "make"

    def test_fork_missing_pid(self) -> None:
        """A body without an integer pid is a bad request."""
        client = _create_client()
        assert client.post("/api/fork", json={}).status_code == HTTP_BAD_REQUEST
        assert client.post("/api/fork", json={"pid": "2"}).status_code == HTTP_BAD_REQUEST
        assert client.post("/api/fork", json={"pid": True}).status_code == HTTP_BAD_REQUEST

    def test_exec_explicit(self) -> None:
        """A named image is loaded with the given fds."""
        client = _create_client()
        body = {"pid": 3, "name": "nano", "file_descriptors": [0, 1, 2, 9]}
        data = client.post("/api/exec", json=body).get_json()
        assert data["name"] == "nano"
        assert data["file_descriptors"] == [0, 1, 2, 9]

    def test_exec_random(self) -> None:
        """Without a name, a catalogue program is loaded."""
        engine = LifecycleEngine(chooser=lambda images: images[3])
        engine.seed([SeedProcess("init"), SeedProcess("sh", parent="init")])
        data = _create_client(engine=engine).post("/api/exec", json={"pid": 2}).get_json()
        assert data["name"] == "firefox"

    def test_exec_bad_fds(self) -> None:
        """Non-integer fds are a bad request."""
        body = {"pid": 3, "name": "nano", "file_descriptors": ["0"]}
        response = _create_client().post("/api/exec", json=body)
        assert response.status_code == HTTP_BAD_REQUEST

    def test_exec_root_forbidden(self) -> None:
        """init's image cannot be replaced."""
        response = _create_client().post("/api/exec", json={"pid": 1})
        assert response.status_code == HTTP_FORBIDDEN

    def test_terminate(self) -> None:
        """POST /api/terminate returns the report."""
        data = _create_client().post("/api/terminate", json={"pid": 2}).get_json()
        assert data == {"terminated_pid": 2, "orphaned_pids": [3, 4]}

    def test_terminate_twice_conflicts(self) -> None:
        """A zombie cannot be terminated again."""
        client = _create_client()
        client.post("/api/terminate", json={"pid": 3})
        response = client.post("/api/terminate", json={"pid": 3})
        assert response.status_code == HTTP_CONFLICT
        assert response.get_json()["kind"] == "ProcessStateError"

    def test_kill_parent(self) -> None:
        """POST /api/kill-parent terminates the parent."""
        data = _create_client().post("/api/kill-parent", json={"pid": 4}).get_json()
        assert data["terminated_pid"] == 2

    def test_kill_parent_of_init_child(self) -> None:
        """A child of init has no killable parent."""
        response = _create_client().post("/api/kill-parent", json={"pid": 2})
        assert response.status_code == HTTP_FORBIDDEN
        assert response.get_json()["kind"] == "NoKillableParentError"


class TestClockAndStatus:
    """Verify tick, status and log."""

    def test_tick_reaps(self) -> None:
        """Advancing past the due time reaps the zombie."""
        client = _create_client()
        client.post("/api/terminate", json={"pid": 3})
        data = client.post("/api/tick", json={"ticks": 2000}).get_json()
        assert data == {"now": 2000, "reaped": [3]}
        assert client.get("/api/processes/3").status_code == HTTP_NOT_FOUND

    def test_tick_default(self) -> None:
        """Without a body, the clock advances by one."""
        assert _create_client().post("/api/tick").get_json()["now"] == 1

    def test_tick_bad_value(self) -> None:
        """Negative or non-integer ticks are a bad request."""
        client = _create_client()
        assert client.post("/api/tick", json={"ticks": -1}).status_code == HTTP_BAD_REQUEST
        assert client.post("/api/tick", json={"ticks": "x"}).status_code == HTTP_BAD_REQUEST

    def test_status(self) -> None:
        """Counters and pending reclamations are reported."""
        client = _create_client()
        client.post("/api/terminate", json={"pid": 2})
        data = client.get("/api/status").get_json()
        assert data["orphaned"] == [3, 4]
        assert data["zombies"] == [2]
        assert data["pending"] == [{"pid": 2, "due": 2000}]
        assert data["text"] == "Orphaned: 2 processes\nZombies: 1 processes"

    def test_log(self) -> None:
        """GET /api/log returns formatted entries."""
        client = _create_client()
        client.post("/api/fork", json={"pid": 2})
        entries = client.get("/api/log?lines=1").get_json()["entries"]
        assert len(entries) == 1
        assert "fork() created PID 5" in entries[0]


class TestDemoEndpoint:
    """Verify the demo endpoint."""

    def test_demo(self) -> None:
        """POST /api/demo runs the walkthrough."""
        data = _create_client().post("/api/demo").get_json()
        assert data["shell_pid"] == 2
        assert data["child_pid"] == 5
        assert data["report"] == {"terminated_pid": 2, "orphaned_pids": [3, 4, 5]}
        assert data["view"] == "inheritance"
        assert data["now"] == 8000
        assert len(data["messages"]) == 5

    def test_demo_without_shell_conflicts(self) -> None:
        """A demo that cannot start is a conflict."""
        client = _create_client(topology=[SeedProcess("init")])
        response = client.post("/api/demo")
        assert response.status_code == HTTP_CONFLICT
        assert response.get_json()["kind"] == "DemoAbortedError"
