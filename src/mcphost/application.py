"""mcphost Application - composition root.

Builds the logger, metrics, state store and MCP client manager once and
hands the same instances to every consumer.
"""

import sys
from pathlib import Path
from types import TracebackType
from typing import TextIO

from mcphost.config import ConfigLoader, HostConfig, ServerStateStore
from mcphost.logging import HostLogger, LogConfig
from mcphost.mcp import MCPClientManager
from mcphost.telemetry import HostMetrics


class MCPHostApplication:
    """
    mcphost application orchestrator.

    Initialization sequence:

    1. Config loading
    2. Logger setup
    3. Metrics
    4. Server state store (persisted auto-start flags)
    5. MCP client manager (auto-starts servers)
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        log_output: TextIO | None = None,
        config: HostConfig | None = None,
    ):
        """Initialize application.

        Args:
            config_path: Path to config file (optional)
            log_output: Output stream for logs (default: sys.stderr, stdout
                belongs to the protocol when embedded in a stdio host)
            config: Ready-made config, skips file loading
        """
        self._config_path = config_path
        self._log_output = log_output or sys.stderr
        self._initialized = False

        # Components (initialized in initialize())
        self.config_loader: ConfigLoader | None = None
        self.config: HostConfig | None = config
        self.logger: HostLogger | None = None
        self.metrics: HostMetrics | None = None
        self.state_store: ServerStateStore | None = None
        self.mcp_manager: MCPClientManager | None = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Initialize all components and auto-start servers."""
        if self._initialized:
            return

        # 1. Config
        self.config_loader = ConfigLoader()
        if self.config is None:
            self.config = self.config_loader.load(self._config_path)

        # 2. Logger
        log_config = LogConfig(
            level=self.config.logging.level,
            format=self.config.logging.format,
            show_context=self.config.logging.show_context,
            truncate_at=self.config.logging.truncate_at,
            components=dict(self.config.logging.components),
            output=self._log_output,
        )
        self.logger = HostLogger(log_config)
        self.config_loader.set_logger(self.logger)

        # 3. Metrics (no-op unless an OpenTelemetry SDK is configured)
        self.metrics = HostMetrics()

        # 4. State store
        self.state_store = ServerStateStore(self.config.state_file, logger=self.logger)

        # 5. MCP client manager
        self.mcp_manager = MCPClientManager(
            self.config.server_entries(),
            settings=self.config.client,
            logger=self.logger,
            metrics=self.metrics,
            state_store=self.state_store,
        )
        await self.mcp_manager.initialize()

        self._initialized = True
        self.logger.info("app", f"Initialized with {len(self.config.servers)} MCP servers")

    async def reload(self) -> HostConfig:
        """Reload the config file and reconcile the server list."""
        if not self._initialized or self.config_loader is None or self.mcp_manager is None:
            raise RuntimeError("Application not initialized")

        self.config = self.config_loader.reload()
        await self.mcp_manager.sync_servers(
            self.config.server_entries(), settings=self.config.client
        )
        return self.config

    async def shutdown(self) -> None:
        """Stop every MCP server."""
        if not self._initialized:
            return
        if self.mcp_manager:
            await self.mcp_manager.shutdown()
        if self.logger:
            self.logger.info("app", "Shutdown complete")
        self._initialized = False

    async def __aenter__(self) -> "MCPHostApplication":
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()
