from types import SimpleNamespace

import pytest

import server
from canvagen.env import Settings
from canvagen.errors import ConfigurationError


class _DummyRunner:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def __call__(self, app, **kwargs) -> None:
        self.calls.append((app, kwargs))


def _dummy_app(**overrides) -> SimpleNamespace:
    settings = Settings(
        client_id="canva-client",
        client_secret="canva-secret",
        redirect_uri="http://127.0.0.1:3000/callback",
        **overrides,
    )
    return SimpleNamespace(state=SimpleNamespace(settings=settings))


def test_main_runs_uvicorn_with_local_defaults(monkeypatch) -> None:
    runner = _DummyRunner()
    app = _dummy_app()
    monkeypatch.setattr(server, "create_app", lambda: app)
    monkeypatch.setattr(server.uvicorn, "run", runner)

    server.main()

    assert runner.calls == [(app, {"host": "127.0.0.1", "port": 3000})]


def test_main_uses_configured_host_and_port(monkeypatch) -> None:
    runner = _DummyRunner()
    app = _dummy_app(host="0.0.0.0", port=9100)
    monkeypatch.setattr(server, "create_app", lambda: app)
    monkeypatch.setattr(server.uvicorn, "run", runner)

    server.main()

    assert runner.calls == [(app, {"host": "0.0.0.0", "port": 9100})]


def test_main_exits_on_configuration_error(monkeypatch) -> None:
    runner = _DummyRunner()

    def _broken_app():
        raise ConfigurationError("Missing required environment variables: CANVA_CLIENT_ID")

    monkeypatch.setattr(server, "create_app", _broken_app)
    monkeypatch.setattr(server.uvicorn, "run", runner)

    with pytest.raises(SystemExit) as exc_info:
        server.main()

    assert exc_info.value.code == 1
    assert runner.calls == []
