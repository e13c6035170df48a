"""Tests for the default static build server."""

import json

import pytest
from fastapi.testclient import TestClient
from uvicorn.importer import ImportFromStringError

from devrouter.core.build_server import StaticBuildServer, load_build_server
from devrouter.core.frontend import create_app


@pytest.fixture
def build_root(tmp_path):
    (tmp_path / "index.html").write_text("<h1>timetables</h1>")
    (tmp_path / "app.js").write_text("console.log('elm');")
    return tmp_path


@pytest.fixture
def static_client(build_root):
    build_server = StaticBuildServer(build_root, ping_interval=0.05)
    return TestClient(create_app(build_server))


def test_serves_files_from_root(static_client):
    response = static_client.get("/app.js")

    assert response.status_code == 200
    assert response.text == "console.log('elm');"


def test_serves_index_for_root_path(static_client):
    response = static_client.get("/")

    assert response.status_code == 200
    assert "timetables" in response.text


def test_missing_file_is_404(static_client):
    response = static_client.get("/missing.css")

    assert response.status_code == 404


def test_live_reload_socket_receives_pings(static_client):
    with static_client.websocket_connect("/elm-watch") as websocket:
        message = json.loads(websocket.receive_text())

    assert message == {"type": "ping"}


def test_missing_root_fails_at_startup(tmp_path):
    with pytest.raises(RuntimeError):
        StaticBuildServer(tmp_path / "does-not-exist")


class TestLoadBuildServer:
    """Tests for resolving build servers from import strings."""

    def test_default_is_static(self, build_root):
        build_server = load_build_server(None, build_root)

        assert isinstance(build_server, StaticBuildServer)
        assert build_server.root == build_root

    def test_factory_receives_root(self, build_root):
        build_server = load_build_server("devrouter.core.build_server:StaticBuildServer", build_root)

        assert isinstance(build_server, StaticBuildServer)
        assert build_server.root == build_root

    def test_rejects_objects_without_handlers(self, build_root):
        with pytest.raises(TypeError):
            load_build_server("devrouter.core.build_server:logger", build_root)

    def test_rejects_unknown_module(self, build_root):
        with pytest.raises(ImportFromStringError):
            load_build_server("devrouter.nope:Server", build_root)
