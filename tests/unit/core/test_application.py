"""Tests for MCPHostApplication."""

import json
import sys
from io import StringIO

import pytest

from mcphost import MCPHostApplication
from mcphost.config import ClientSettings, HostConfig, LoggingConfig, ServerDefinition
from mcphost.types import ConnectionStatus, LogFormat

pytestmark = pytest.mark.mcp_client

FAST_CLIENT = {"request_timeout": 5, "startup_grace": 0.05, "kill_timeout": 1}


def write_config(path, fake_server_path, state_file, servers):
    """Write a YAML config (JSON is valid YAML) for the fake server."""
    data = {
        "client": FAST_CLIENT,
        "logging": {"format": "json", "level": "DEBUG"},
        "state_file": str(state_file),
        "servers": {
            name: {
                "command": sys.executable,
                "args": [str(fake_server_path), *flags],
                "auto_start": True,
            }
            for name, flags in servers.items()
        },
    }
    path.write_text(json.dumps(data))


class TestMCPHostApplication:
    """Tests for the composition root."""

    @pytest.mark.asyncio
    async def test_initialize_from_config_object(self, fake_server_path, tmp_path):
        config = HostConfig(
            client=ClientSettings(**FAST_CLIENT),
            logging=LoggingConfig(format=LogFormat.JSON),
            servers={
                "notes": ServerDefinition(
                    command=sys.executable,
                    args=[str(fake_server_path)],
                    auto_start=True,
                ),
                "idle": ServerDefinition(command=sys.executable, args=[str(fake_server_path)]),
            },
            state_file=str(tmp_path / "state.json"),
        )
        output = StringIO()

        async with MCPHostApplication(config=config, log_output=output) as app:
            assert app.initialized
            status = app.mcp_manager.get_status()
            assert status["notes"].status == ConnectionStatus.CONNECTED
            assert status["idle"].status == ConnectionStatus.DISCONNECTED
            assert app.state_store.path == tmp_path / "state.json"

        assert not app.initialized
        lines = [json.loads(line) for line in output.getvalue().splitlines()]
        messages = [line["message"] for line in lines]
        assert "Initialized with 2 MCP servers" in messages
        assert "Shutdown complete" in messages
        assert any(line["component"] == "mcp.notes" for line in lines)

    @pytest.mark.asyncio
    async def test_initialize_from_file(self, fake_server_path, tmp_path):
        config_path = tmp_path / "mcphost.yaml"
        write_config(config_path, fake_server_path, tmp_path / "state.json", {"notes": []})

        app = MCPHostApplication(config_path=config_path, log_output=StringIO())
        try:
            await app.initialize()
            await app.initialize()

            assert app.config.client.request_timeout == 5
            tools = app.mcp_manager.get_all_tools()
            assert "search_notes" in [t.tool.name for t in tools]
        finally:
            await app.shutdown()

    @pytest.mark.asyncio
    async def test_reload_syncs_servers(self, fake_server_path, tmp_path):
        config_path = tmp_path / "mcphost.yaml"
        state_file = tmp_path / "state.json"
        write_config(config_path, fake_server_path, state_file, {"notes": []})

        app = MCPHostApplication(config_path=config_path, log_output=StringIO())
        try:
            await app.initialize()

            write_config(
                config_path,
                fake_server_path,
                state_file,
                {"files": ["--single-tool"]},
            )
            await app.reload()

            status = app.mcp_manager.get_status()
            assert list(status) == ["files"]
            assert status["files"].status == ConnectionStatus.CONNECTED
        finally:
            await app.shutdown()

    @pytest.mark.asyncio
    async def test_reload_applies_client_settings(self, fake_server_path, tmp_path):
        config_path = tmp_path / "mcphost.yaml"
        state_file = tmp_path / "state.json"
        write_config(config_path, fake_server_path, state_file, {"notes": []})

        app = MCPHostApplication(config_path=config_path, log_output=StringIO())
        try:
            await app.initialize()
            data = json.loads(config_path.read_text())
            data["client"]["request_timeout"] = 9
            config_path.write_text(json.dumps(data))

            await app.reload()

            client = app.mcp_manager.get_client("notes")
            assert client.settings.request_timeout == 9
            assert client.status == ConnectionStatus.CONNECTED
        finally:
            await app.shutdown()

    @pytest.mark.asyncio
    async def test_reload_before_initialize(self):
        with pytest.raises(RuntimeError):
            await MCPHostApplication(config=HostConfig()).reload()

    @pytest.mark.asyncio
    async def test_shutdown_before_initialize_is_noop(self):
        await MCPHostApplication(config=HostConfig()).shutdown()
