"""HTTP health check server"""

import asyncio
import logging
import time

from aiohttp import web

from tashbot.core.controller import Controller

logger = logging.getLogger("Tashbot.Health")


class HealthCheckServer:
    """HTTP health check server"""

    def __init__(self, controller: Controller, host: str = "0.0.0.0", port: int = 4344):
        self.controller = controller
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._start_time: float = time.time()
        self._heartbeat_task: asyncio.Task | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Configure HTTP routes"""
        self.app.router.add_get("/", self.handle_root)
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/status", self.handle_status)

    async def handle_root(self, request: web.Request) -> web.Response:
        """Root endpoint - minimal service info"""
        return web.json_response({"service": "tashbot", "status": "running"})

    async def handle_health(self, request: web.Request) -> web.Response:
        """Liveness check, always 200"""
        ready = self.controller.running
        return web.json_response(
            {"status": "healthy" if ready else "stopped", "ready": ready},
        )

    async def handle_status(self, request: web.Request) -> web.Response:
        runner = self.controller.runner
        return web.json_response(
            {
                "service": "tashbot",
                "state": runner.state.value,
                "uptime_seconds": int(time.time() - self._start_time),
                "joined_channels": sorted(runner.joined_channels),
                "commands": len(runner.commands),
            }
        )

    async def _heartbeat(self) -> None:
        """Periodic heartbeat: log uptime and runner status"""
        while True:
            await asyncio.sleep(300)
            uptime = int(time.time() - self._start_time)
            runner = self.controller.runner
            logger.info(
                f"Heartbeat: uptime={uptime}s, state={runner.state.value}, "
                f"channels={len(runner.joined_channels)}, commands={len(runner.commands)}"
            )

    async def start(self) -> None:
        """Start health check server"""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()

        site = web.TCPSite(self.runner, self.host, self.port)
        await site.start()

        self._heartbeat_task = asyncio.create_task(self._heartbeat())

        logger.info(f"Health server started on {self.host}:{self.port}")
        logger.info(f"  GET http://{self.host}:{self.port}/health - Health check")
        logger.info(f"  GET http://{self.host}:{self.port}/status - Detailed status")

    async def stop(self) -> None:
        """Stop health check server"""
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
            logger.info("Health server stopped")
