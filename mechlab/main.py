#!/usr/bin/env python3
"""
Async JSON-lines TCP server for the mechlab engine.

Messages (one JSON object per line):
 - {"type":"simulate","systemId":"pendulum","dt":0.01,"steps":500}
 - {"type":"solve","systemId":"brachistochrone","params":{"segments":60}}
 - {"cmd":"status"}
 - {"cmd":"systems"}
 - {"cmd":"shutdown"}

Each connection is a session with at most one computation in flight. The
computation runs in a single-worker process pool so the event loop keeps
answering ``status`` while it works. A compute request that arrives while
another is pending is refused; there is no mid-run cancellation. A worker
process that dies is replaced, and the request it was running gets an
``internal`` error.
"""

import argparse
import asyncio
import concurrent.futures
import json
import os
import time
from collections import Counter
from concurrent.futures.process import BrokenProcessPool
from typing import Any, Dict, Optional, Set

import psutil
from loguru import logger

from .config import Settings, configure_logging
from .engine import Engine
from .errors import ErrorCategory
from .protocol import ErrorResult

COMPUTE_TYPES = ("simulate", "solve")

_WORKER_ENGINE: Optional[Engine] = None


def run_request(message: Dict[str, Any], max_steps: int = 0) -> Dict[str, Any]:
    """Executor entry point; keeps one engine per worker process."""
    global _WORKER_ENGINE
    if _WORKER_ENGINE is None or _WORKER_ENGINE.max_steps != max_steps:
        _WORKER_ENGINE = Engine(max_steps=max_steps)
    return _WORKER_ENGINE.handle(message)


def error_reply(message: str, category: ErrorCategory) -> Dict[str, Any]:
    return ErrorResult(message=message, category=category.value).dump()


def encode(payload: Dict[str, Any]) -> bytes:
    # NaN/Infinity are emitted as-is
    return json.dumps(payload, allow_nan=True).encode("utf-8") + b"\n"


class Session:
    def __init__(self, server: "MechlabServer", reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.server = server
        self.reader = reader
        self.writer = writer
        self.peer = writer.get_extra_info("peername")
        self.pending: Optional[asyncio.Task] = None
        self.closed = False
        self._write_lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self.pending is not None and not self.pending.done()

    async def send(self, payload: Dict[str, Any]) -> None:
        if self.closed:
            return
        async with self._write_lock:
            self.writer.write(encode(payload))
            await self.writer.drain()

    async def _compute(self, message: Dict[str, Any]) -> None:
        response = await self.server.compute(message)
        if "id" in message:
            response["id"] = message["id"]
        if self.closed:
            logger.debug(f"Dropping result for closed session {self.peer}")
            return
        try:
            await self.send(response)
        except ConnectionError as exc:
            logger.debug(f"Session {self.peer} went away before the result was sent: {exc}")

    def _compute_done(self, task: asyncio.Task) -> None:
        # a session that closed mid-run never awaits its task
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"Computation for {self.peer} failed: {exc}")

    async def dispatch(self, message: Dict[str, Any]) -> bool:
        """Handle one message; returns False when the session should end."""
        if message.get("type") in COMPUTE_TYPES:
            if self.busy:
                await self.send(error_reply("A computation is already in flight for this session.", ErrorCategory.USAGE))
                return True
            self.pending = asyncio.create_task(self._compute(message))
            self.pending.add_done_callback(self._compute_done)
            return True

        cmd = str(message.get("cmd", "")).lower()
        if cmd == "status":
            await self.send({"status": "ok", **self.server.status(), "session": {"busy": self.busy}})
        elif cmd == "systems":
            await self.send({"status": "ok", **self.server.catalog})
        elif cmd == "shutdown":
            await self.send({"status": "shutting_down"})
            self.server.request_shutdown()
            return False
        else:
            await self.send(error_reply(f"Unknown message: {message.get('type') or cmd or '?'}", ErrorCategory.USAGE))
        return True

    async def run(self) -> None:
        logger.info(f"Client connected: {self.peer}")
        try:
            while True:
                try:
                    line = await self.reader.readline()
                except (asyncio.LimitOverrunError, ValueError) as exc:
                    await self.send(error_reply(f"Message too large: {exc}", ErrorCategory.VALIDATION))
                    break
                if not line:
                    break
                try:
                    message = json.loads(line.decode("utf-8").strip())
                except json.JSONDecodeError as exc:
                    await self.send(error_reply(f"Invalid JSON: {exc}", ErrorCategory.VALIDATION))
                    continue
                if not isinstance(message, dict):
                    await self.send(error_reply("Expected a JSON object.", ErrorCategory.VALIDATION))
                    continue
                if not await self.dispatch(message):
                    break
        except ConnectionError as exc:
            logger.debug(f"Connection error from {self.peer}: {exc}")
        finally:
            self.closed = True
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except ConnectionError:
                pass
            logger.info(f"Client disconnected: {self.peer}")


class MechlabServer:
    def __init__(self, settings: Optional[Settings] = None, executor: Optional[concurrent.futures.Executor] = None):
        self.settings = settings or Settings.from_env()
        self._executor = executor or self._new_executor()
        self._catalog: Optional[Dict[str, Any]] = None
        self.sessions: Set[Session] = set()
        self.metrics: Counter = Counter()
        self.error_stats: Counter = Counter()
        self.started_at = time.time()
        self.shutting_down = False
        self._stop: Optional[asyncio.Event] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._process = psutil.Process(os.getpid())

    @staticmethod
    def _new_executor() -> concurrent.futures.Executor:
        return concurrent.futures.ProcessPoolExecutor(max_workers=1)

    def _replace_executor(self) -> None:
        broken, self._executor = self._executor, self._new_executor()
        broken.shutdown(wait=False, cancel_futures=True)
        self.metrics["worker_restarts"] += 1

    @property
    def catalog(self) -> Dict[str, Any]:
        if self._catalog is None:
            self._catalog = Engine().catalog()
        return self._catalog

    @property
    def port(self) -> int:
        if self._server is None or not self._server.sockets:
            return self.settings.port
        return self._server.sockets[0].getsockname()[1]

    def _submit(self, message: Dict[str, Any]) -> concurrent.futures.Future:
        try:
            return self._executor.submit(run_request, message, self.settings.max_steps)
        except BrokenProcessPool as exc:
            # the worker died on an earlier request; this one never reached it
            logger.warning(f"Worker pool was broken ({exc}), starting a new one")
            self._replace_executor()
            return self._executor.submit(run_request, message, self.settings.max_steps)

    async def compute(self, message: Dict[str, Any]) -> Dict[str, Any]:
        self.metrics["requests"] += 1
        started = time.perf_counter()
        try:
            response = await asyncio.wrap_future(self._submit(message))
        except BrokenProcessPool as exc:
            logger.opt(exception=exc).error("Worker process died, starting a new one")
            self._replace_executor()
            response = error_reply(f"Worker process died: {exc}", ErrorCategory.INTERNAL)
        self.metrics["last_duration_ms"] = int((time.perf_counter() - started) * 1000)
        if response.get("type") == "error":
            self.error_stats[response.get("category") or "internal"] += 1
        else:
            self.metrics["completed"] += 1
        return response

    def status(self) -> Dict[str, Any]:
        memory = self._process.memory_info()
        return {
            "uptime_s": time.time() - self.started_at,
            "sessions": len(self.sessions),
            "busy_sessions": sum(1 for s in self.sessions if s.busy),
            "metrics": dict(self.metrics),
            "errors": dict(self.error_stats),
            "process": {
                "pid": self._process.pid,
                "rss_bytes": memory.rss,
                "cpu_percent": self._process.cpu_percent(interval=None),
                "threads": self._process.num_threads(),
            },
        }

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        session = Session(self, reader, writer)
        self.sessions.add(session)
        try:
            await session.run()
        finally:
            self.sessions.discard(session)

    async def start(self) -> asyncio.AbstractServer:
        self._stop = asyncio.Event()
        self._server = await asyncio.start_server(
            self._handle_client, self.settings.host, self.settings.port, limit=self.settings.stream_limit
        )
        addrs = ", ".join(str(s.getsockname()) for s in self._server.sockets or [])
        logger.info(f"Server listening on {addrs}")
        return self._server

    def request_shutdown(self) -> None:
        self.shutting_down = True
        if self._stop is not None:
            self._stop.set()

    async def serve(self) -> None:
        if self._server is None:
            await self.start()
        try:
            await self._stop.wait()
        finally:
            await self.close()

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Server stopped")


def build_parser() -> argparse.ArgumentParser:
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(description="mechlab JSON-lines simulation server")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", default=settings.port, type=int)
    parser.add_argument("--log-level", default=settings.log_level)
    parser.add_argument("--max-steps", default=settings.max_steps, type=int, help="0 disables the limit")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    settings = Settings.from_env()
    settings.host, settings.port, settings.max_steps = args.host, args.port, max(0, args.max_steps)
    settings.log_level = args.log_level.upper()
    try:
        asyncio.run(MechlabServer(settings).serve())
    except KeyboardInterrupt:
        logger.info("Server interrupted, exiting.")


if __name__ == "__main__":
    main()
