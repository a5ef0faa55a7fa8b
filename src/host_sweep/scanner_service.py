"""
Host Sweep Service - HTTP API around the scan engine.

Endpoints:
    GET  /health                       engine identity and probe method
    GET  /scan/stream?target=...       Server-Sent Events scan
    POST /scan                         synchronous JSON scan

A client disconnecting from /scan/stream cancels its scan: no new probes
are launched once the disconnect is seen.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from aiohttp import web

from . import __version__
from ._types import METHOD_LABELS, ProbeMethod
from .config import SweepConfig, load_config
from .engine import open_session, run_to_completion, stream_session
from .events import EventSink, EventStream, encode_sse
from .exceptions import InvalidRequest, InvalidTarget, ScanAborted
from .inventory import InventoryDatabase, InventoryRecorder
from .models import ScanRequest
from .probes import Prober, create_prober
from .scheduler import CancelToken

logger = logging.getLogger(__name__)


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    **CORS_HEADERS,
}


@web.middleware
async def cors_middleware(request: web.Request, handler):
    """Answer preflight requests and add CORS headers to every response."""
    if request.method == "OPTIONS":
        return web.Response(headers=CORS_HEADERS)
    try:
        response = await handler(request)
    except web.HTTPException as e:
        e.headers.update(CORS_HEADERS)
        raise
    if not response.prepared:
        response.headers.update(CORS_HEADERS)
    return response


class SweepService:
    """
    Host sweep HTTP service.

    Owns no scan state beyond the cancel tokens of running sessions, which
    stop() uses to abort them on shutdown.
    """

    def __init__(self, config: SweepConfig):
        """
        Initialize sweep service.

        Args:
            config: Service configuration
        """
        self.config = config
        self.inventory: Optional[InventoryDatabase] = None
        if config.inventory_db_path:
            self.inventory = InventoryDatabase(config.inventory_db_path)
            logger.info(f"Inventory recording enabled at {config.inventory_db_path}")

        self._active_tokens: set[CancelToken] = set()
        self._shutdown_event = asyncio.Event()

        self._api_app: Optional[web.Application] = None
        self._api_runner: Optional[web.AppRunner] = None

    def create_app(self) -> web.Application:
        """Build the aiohttp application."""
        app = web.Application(middlewares=[cors_middleware])
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/api/health", self._handle_health)
        app.router.add_get("/scan/stream", self._handle_stream_scan)
        app.router.add_post("/scan", self._handle_scan)
        return app

    async def start(self) -> None:
        """Start the API server and serve until stop() is called."""
        logger.info("Starting Host Sweep Service")
        self._api_app = self.create_app()
        self._api_runner = web.AppRunner(self._api_app)
        await self._api_runner.setup()
        site = web.TCPSite(self._api_runner, self.config.api_host, self.config.api_port)
        await site.start()
        logger.info(f"API server started on {self.config.api_host}:{self.config.api_port}")

        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Abort running scans and stop the API server."""
        logger.info("Stopping Host Sweep Service")
        for token in list(self._active_tokens):
            token.cancel("service shutting down")

        if self._api_runner:
            await self._api_runner.cleanup()
            self._api_runner = None
        self._shutdown_event.set()

    @property
    def active_scans(self) -> int:
        return len(self._active_tokens)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _prober_for(self, scan_request: ScanRequest) -> Prober:
        """Build the prober named by the request, or the configured default."""
        return create_prober(
            scan_request.method or self.config.default_method,
            tcp_port=scan_request.port or self.config.tcp_port,
            ping_binary=self.config.ping_binary,
        )

    def _observers(self) -> list[EventSink]:
        if self.inventory is None:
            return []
        return [InventoryRecorder(self.inventory)]

    @staticmethod
    def _error(message: str, status: int) -> web.Response:
        return web.json_response({"error": message}, status=status)

    async def _watch_disconnect(self, request: web.Request, token: CancelToken) -> None:
        """Cancel the session as soon as the client's transport goes away."""
        while not token.cancelled:
            await asyncio.sleep(self.config.disconnect_poll_interval)
            transport = request.transport
            if transport is None or transport.is_closing():
                logger.info(f"Client {request.remote} disconnected")
                token.cancel("client disconnected")
                return

    # -------------------------------------------------------------------------
    # API Handlers
    # -------------------------------------------------------------------------

    async def _handle_stream_scan(self, request: web.Request) -> web.StreamResponse:
        """Handle GET /scan/stream."""
        try:
            scan_request = ScanRequest.parse(request.query)
            session = open_session(
                scan_request.target,
                scan_request.to_options(self.config),
                self._prober_for(scan_request),
                max_addresses=self.config.max_addresses,
            )
        except (InvalidRequest, InvalidTarget) as e:
            return self._error(str(e), 400)

        response = web.StreamResponse(headers=SSE_HEADERS)
        await response.prepare(request)

        token = session.cancel_token
        stream = EventStream(maxsize=self.config.stream_buffer_size)
        self._active_tokens.add(token)
        producer = asyncio.create_task(
            stream_session(session, stream, observers=self._observers())
        )
        watcher = asyncio.create_task(self._watch_disconnect(request, token))

        try:
            event_id = 0
            async for event in stream:
                event_id += 1
                await response.write(encode_sse(event, event_id))
        except ConnectionResetError:
            logger.info(f"Stream to {request.remote} closed during scan of {session.target}")
            token.cancel("client disconnected")
            stream.detach()
        finally:
            watcher.cancel()
            if not producer.done():
                token.cancel("stream handler exited")
                stream.detach()
            self._active_tokens.discard(token)
            try:
                await producer
            except ScanAborted as e:
                logger.info(f"Streaming scan of {session.target} ended early: {e}")
            except Exception as e:
                logger.error(f"Streaming scan of {session.target} failed: {e}")

        return response

    async def _handle_scan(self, request: web.Request) -> web.Response:
        """Handle POST /scan."""
        try:
            data = await request.json() if request.body_exists else {}
        except json.JSONDecodeError:
            return self._error("Request body must be JSON", 400)
        if not isinstance(data, dict):
            return self._error("Request body must be a JSON object", 400)

        token = CancelToken()
        self._active_tokens.add(token)
        try:
            scan_request = ScanRequest.parse(data)
            summary = await run_to_completion(
                scan_request.target,
                scan_request.to_options(self.config),
                self._prober_for(scan_request),
                max_addresses=self.config.max_addresses,
                observers=self._observers(),
                cancel_token=token,
            )
        except (InvalidRequest, InvalidTarget) as e:
            return self._error(str(e), 400)
        except ScanAborted as e:
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=503,
            )
        except Exception as e:
            logger.error(f"Scan failed: {e}")
            return web.json_response(
                {"status": "error", "message": str(e)},
                status=500,
            )
        finally:
            self._active_tokens.discard(token)

        return web.json_response(summary.to_dict())

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /health."""
        return web.json_response({
            "status": "ok",
            "service": "host-sweep",
            "method": METHOD_LABELS[self.config.default_method],
            "version": __version__,
            "active_scans": self.active_scans,
        })


async def _scan_once(config: SweepConfig, target: str, method: Optional[str]) -> int:
    """Run one synchronous scan from the command line and print the result."""
    prober = create_prober(
        method or config.default_method,
        tcp_port=config.tcp_port,
        ping_binary=config.ping_binary,
    )
    if not await prober.is_available():
        logger.error(f"Probe method {prober.method.value} is not available on this host")
        return 1

    observers = []
    if config.inventory_db_path:
        observers.append(InventoryRecorder(InventoryDatabase(config.inventory_db_path)))

    try:
        request = ScanRequest.parse({"target": target})
        summary = await run_to_completion(
            request.target,
            request.to_options(config),
            prober,
            max_addresses=config.max_addresses,
            observers=observers,
        )
    except (InvalidRequest, InvalidTarget) as e:
        logger.error(f"Invalid scan request: {e}")
        return 2

    print(json.dumps(summary.to_dict(), indent=2))
    return 0


def main():
    """Entry point for host-sweep."""
    import argparse

    parser = argparse.ArgumentParser(description="Host Sweep Service")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("--host", type=str, help="API host")
    parser.add_argument("--port", type=int, help="API port")
    parser.add_argument("--log-level", type=str, help="Log level")
    parser.add_argument("--scan", type=str, metavar="TARGET", help="Run one scan and exit")
    parser.add_argument("--method", type=str, choices=[m.value for m in ProbeMethod],
                        help="Probe method for --scan")
    parser.add_argument("--timeout", type=float, help="Per-probe timeout for --scan")
    parser.add_argument("--batch-size", type=int, help="Concurrency limit for --scan")
    args = parser.parse_args()

    # Load configuration
    if args.config:
        config = SweepConfig.from_yaml(Path(args.config))
    else:
        config = load_config()

    # Override with CLI args
    overrides = {
        "api_host": args.host,
        "api_port": args.port,
        "log_level": args.log_level,
        "default_timeout": args.timeout,
        "default_concurrency": args.batch_size,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        config = SweepConfig(**{**config.model_dump(), **overrides})

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.scan:
        sys.exit(asyncio.run(_scan_once(config, args.scan, args.method)))

    service = SweepService(config)

    # Handle signals
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(service.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        loop.run_until_complete(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        loop.run_until_complete(service.stop())
        loop.close()


if __name__ == "__main__":
    main()
