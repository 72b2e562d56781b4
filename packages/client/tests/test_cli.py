"""Tests for the command line client."""

import uuid

import httpx
import pytest
import structlog

from trackline_client.api import TrackerClient
from trackline_client.config import ClientConfig
from trackline_client import main as cli
from trackline_client.main import build_parser, cmd_favorite, cmd_search, configure_logging, run


def _client(handler):
    return TrackerClient("http://tracker.test", transport=httpx.MockTransport(handler))


def test_parser():
    args = build_parser().parse_args(["-c", "x.yaml", "search", "login", "bug"])
    assert args.config == "x.yaml"
    assert args.query == ["login", "bug"]


def test_missing_config_exits(tmp_path):
    with pytest.raises(SystemExit) as exc_info:
        run(["-c", str(tmp_path / "missing.yaml"), "search", "x"])
    assert exc_info.value.code == 1


@pytest.mark.asyncio
async def test_search_prints_results(capsys):
    team_id = uuid.uuid4()

    def handler(request):
        return httpx.Response(200, json=[{"id": str(team_id), "title": "Core", "type": "team"}])

    async with _client(handler) as client:
        code = await cmd_search(client, "core")

    assert code == 0
    assert capsys.readouterr().out == f"[team] Core ({team_id})\n"


@pytest.mark.asyncio
async def test_favorite_reports_failure(capsys):
    def handler(request):
        return httpx.Response(404, json={"success": False, "error": "Project not found"})

    async with _client(handler) as client:
        code = await cmd_favorite(client, ClientConfig(), str(uuid.uuid4()))

    assert code == 1
    assert "Project not found" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_favorite_reports_state(capsys):
    project_id = str(uuid.uuid4())

    def handler(request):
        return httpx.Response(200, json={"success": True, "data": {"isFavorite": True}})

    async with _client(handler) as client:
        code = await cmd_favorite(client, ClientConfig(), project_id)

    assert code == 0
    assert capsys.readouterr().out == f"Project {project_id} favorited.\n"


@pytest.mark.parametrize("level", ["debug", "info", "WARNING", "error"])
def test_configure_logging_accepts_level_names(level):
    try:
        configure_logging(level, "text")
        structlog.get_logger().error("cli.still_logged")
    finally:
        structlog.reset_defaults()


def test_run_configures_logging_and_exits_with_command_code(tmp_path, monkeypatch):
    config_file = tmp_path / "trackline.yaml"
    config_file.write_text("logging:\n  level: debug\n  format: json\n")
    seen = {}

    async def fake_command(args, config):
        seen["command"] = args.command
        return 0

    monkeypatch.setattr(cli, "_run_command", fake_command)
    try:
        with pytest.raises(SystemExit) as exc_info:
            run(["-c", str(config_file), "search", "login"])
    finally:
        structlog.reset_defaults()

    assert exc_info.value.code == 0
    assert seen == {"command": "search"}
