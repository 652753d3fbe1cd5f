#!/usr/bin/env python3
"""
JSON-lines client for the mechlab server.

Usage:
  mechlab-client --host 127.0.0.1 --port 8765 '{"type":"simulate","systemId":"pendulum","dt":0.01,"steps":100}'
Without a message argument the client is interactive: type JSON per line,
or one of the shortcuts ``status``, ``systems``, ``shutdown``,
``simulate <systemId> [steps]``, ``solve <systemId>``.
"""

import argparse
import asyncio
import json
from typing import Any, Dict, Optional

from loguru import logger

from .config import Settings, configure_logging


class MechlabClient:
    def __init__(self, host: str = "127.0.0.1", port: int = 8765, limit: int = 64 * 1024 * 1024):
        self.host = host
        self.port = port
        self.limit = limit
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    async def connect(self) -> "MechlabClient":
        self._reader, self._writer = await asyncio.open_connection(self.host, self.port, limit=self.limit)
        logger.debug(f"Connected to {self.host}:{self.port}")
        return self

    async def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            await self._writer.wait_closed()
            self._writer = None

    async def __aenter__(self) -> "MechlabClient":
        return await self.connect()

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def send(self, message: Dict[str, Any]) -> None:
        if self._writer is None:
            raise ConnectionError("Client is not connected.")
        self._writer.write(json.dumps(message).encode("utf-8") + b"\n")
        await self._writer.drain()

    async def receive(self) -> Dict[str, Any]:
        if self._reader is None:
            raise ConnectionError("Client is not connected.")
        line = await self._reader.readline()
        if not line:
            raise ConnectionError("Server closed connection.")
        return json.loads(line.decode("utf-8"))

    async def request(self, message: Dict[str, Any]) -> Dict[str, Any]:
        await self.send(message)
        return await self.receive()

    async def simulate(self, system_id: str, dt: float, steps: int, **fields: Any) -> Dict[str, Any]:
        return await self.request({"type": "simulate", "systemId": system_id, "dt": dt, "steps": steps, **fields})

    async def solve(self, system_id: str, params: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
        return await self.request({"type": "solve", "systemId": system_id, "params": params or {}})

    async def status(self) -> Dict[str, Any]:
        return await self.request({"cmd": "status"})


def parse_shortcut(line: str) -> Dict[str, Any]:
    """Turn an interactive line into a message; raw JSON passes through."""
    text = line.strip()
    if text.startswith("{"):
        return json.loads(text)
    parts = text.split()
    head = parts[0].lower()
    if head in ("status", "systems", "shutdown"):
        return {"cmd": head}
    if head == "simulate" and len(parts) > 1:
        steps = int(parts[2]) if len(parts) > 2 else 500
        return {"type": "simulate", "systemId": parts[1], "dt": 0.01, "steps": steps}
    if head == "solve" and len(parts) > 1:
        return {"type": "solve", "systemId": parts[1], "params": {}}
    raise ValueError(f"Unrecognised input: {text}")


def preview(response: Dict[str, Any], width: int = 400) -> str:
    text = json.dumps(response)
    if len(text) <= width:
        return text
    summary: Dict[str, Any] = {"type": response.get("type"), "keys": list(response)}
    if isinstance(response.get("t"), list):
        summary["frames"] = len(response["t"])
    if isinstance(response.get("derived"), dict):
        summary["derived"] = sorted(response["derived"])
    return json.dumps(summary)


async def run_interactive(client: MechlabClient) -> None:
    loop = asyncio.get_running_loop()
    print(f"Connected to {client.host}:{client.port}. Type JSON or a shortcut, 'quit' to exit.")
    while True:
        line = await loop.run_in_executor(None, input, "> ")
        if not line.strip():
            continue
        if line.strip().lower() in ("quit", "exit"):
            break
        try:
            message = parse_shortcut(line)
        except ValueError as exc:
            print(f"error: {exc}")
            continue
        response = await client.request(message)
        print(preview(response))
        if message.get("cmd") == "shutdown":
            break


async def run_client(host: str, port: int, message: Optional[str] = None) -> None:
    async with MechlabClient(host, port) as client:
        if message is None:
            await run_interactive(client)
        else:
            print(json.dumps(await client.request(parse_shortcut(message))))


def main(argv=None):
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(description="mechlab JSON-lines client")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", default=settings.port, type=int)
    parser.add_argument("--log-level", default="WARNING")
    parser.add_argument("message", nargs="?", help="JSON message or shortcut to send once")
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    try:
        asyncio.run(run_client(args.host, args.port, args.message))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
