import asyncio
import concurrent.futures
import os
from concurrent.futures.process import BrokenProcessPool

import pytest
from loguru import logger

from mechlab.client import MechlabClient, parse_shortcut, preview
from mechlab.config import Settings
from mechlab.main import MechlabServer, build_parser, encode


def _run_with_server(scenario):
    async def runner():
        server = MechlabServer(Settings(port=0), executor=concurrent.futures.ThreadPoolExecutor(max_workers=1))
        await server.start()
        serving = asyncio.create_task(server.serve())
        try:
            async with MechlabClient("127.0.0.1", server.port) as client:
                result = await scenario(client)
                reply = await client.request({"cmd": "shutdown"})
                assert reply == {"status": "shutting_down"}
            await asyncio.wait_for(serving, timeout=10)
            return result
        finally:
            if not serving.done():
                server.request_shutdown()
                await asyncio.wait_for(serving, timeout=10)

    return asyncio.run(runner())


def test_simulate_round_trip():
    async def scenario(client):
        return await client.simulate("pendulum", 0.01, 20, id=7)

    response = _run_with_server(scenario)
    assert response["type"] == "simulate:result"
    assert response["id"] == 7
    assert len(response["t"]) == 21
    assert set(response["derived"]) == {"bobX", "bobY"}


def test_solve_round_trip():
    async def scenario(client):
        return await client.solve("tunnelingscan", {"scanPoints": 40})

    response = _run_with_server(scenario)
    assert response["type"] == "solve:result"
    assert len(response["result"]["points"]) == 40


def test_status_and_catalog():
    async def scenario(client):
        status = await client.status()
        catalog = await client.request({"cmd": "systems"})
        return status, catalog

    status, catalog = _run_with_server(scenario)
    assert status["status"] == "ok"
    assert status["sessions"] == 1
    assert status["session"] == {"busy": False}
    assert status["process"]["rss_bytes"] > 0
    assert any(entry["id"] == "orbit" for entry in catalog["systems"])


def test_errors_do_not_end_the_session():
    async def scenario(client):
        await client.send({"type": "simulate", "systemId": "nope", "dt": 0.1, "steps": 1})
        unknown = await client.receive()
        client._writer.write(b"{not json\n")
        invalid = await client.receive()
        listed = await client.request([1, 2])
        other = await client.request({"cmd": "dance"})
        alive = await client.status()
        return unknown, invalid, listed, other, alive

    unknown, invalid, listed, other, alive = _run_with_server(scenario)
    assert unknown["category"] == "unknown_system"
    assert invalid["message"].startswith("Invalid JSON")
    assert invalid["category"] == "validation"
    assert listed == {"type": "error", "message": "Expected a JSON object.", "category": "validation"}
    assert other == {"type": "error", "message": "Unknown message: dance", "category": "usage"}
    assert alive["errors"] == {"unknown_system": 1}


def test_second_compute_is_refused_while_busy():
    async def scenario(client):
        await client.send({"type": "simulate", "systemId": "doublependulum", "dt": 0.001, "steps": 20000})
        await client.send({"type": "simulate", "systemId": "pendulum", "dt": 0.01, "steps": 5})
        first = await client.receive()
        second = await client.receive()
        return first, second

    first, second = _run_with_server(scenario)
    assert first["type"] == "error"
    assert "already in flight" in first["message"]
    assert first["category"] == "usage"
    assert second["type"] == "simulate:result"
    assert len(second["t"]) == 20001


def test_dead_worker_is_replaced():
    async def runner():
        server = MechlabServer(Settings(port=0))
        try:
            loop = asyncio.get_running_loop()
            with pytest.raises(BrokenProcessPool):
                await loop.run_in_executor(server._executor, os._exit, 1)
            response = await server.compute({"type": "simulate", "systemId": "pendulum", "dt": 0.01, "steps": 5})
            again = await server.compute({"type": "simulate", "systemId": "oscillator", "dt": 0.01, "steps": 5})
            return response, again, dict(server.metrics)
        finally:
            await server.close()

    response, again, metrics = asyncio.run(runner())
    assert response["type"] == "simulate:result"
    assert len(response["t"]) == 6
    assert again["type"] == "simulate:result"
    assert metrics["worker_restarts"] == 1
    assert metrics["completed"] == 2


def test_failed_computation_is_logged():
    messages = []
    sink = logger.add(messages.append, level="ERROR")

    async def failing(message):
        raise RuntimeError("worker exploded")

    async def runner():
        server = MechlabServer(Settings(port=0), executor=concurrent.futures.ThreadPoolExecutor(max_workers=1))
        server.compute = failing
        await server.start()
        serving = asyncio.create_task(server.serve())
        async with MechlabClient("127.0.0.1", server.port) as client:
            await client.send({"type": "simulate", "systemId": "pendulum", "dt": 0.01, "steps": 5})
            await client.status()
            reply = await client.request({"cmd": "shutdown"})
        await asyncio.wait_for(serving, timeout=10)
        return reply

    try:
        reply = asyncio.run(runner())
    finally:
        logger.remove(sink)
    assert reply == {"status": "shutting_down"}
    assert any("worker exploded" in str(message) for message in messages)


def test_encode_keeps_non_finite_numbers():
    assert encode({"energy": [float("inf")]}) == b'{"energy": [Infinity]}\n'


def test_parser_defaults():
    args = build_parser().parse_args(["--port", "0", "--max-steps", "50"])
    assert args.port == 0
    assert args.max_steps == 50


def test_shortcuts():
    assert parse_shortcut("status") == {"cmd": "status"}
    assert parse_shortcut("simulate orbit 40") == {"type": "simulate", "systemId": "orbit", "dt": 0.01, "steps": 40}
    assert parse_shortcut("solve brachistochrone")["type"] == "solve"
    assert parse_shortcut('{"cmd": "systems"}') == {"cmd": "systems"}
    with pytest.raises(ValueError):
        parse_shortcut("jump")


def test_preview_summarizes_large_results():
    response = {"type": "simulate:result", "t": list(range(500)), "y": [[0.0]] * 500}
    summary = preview(response, width=100)
    assert '"frames": 500' in summary


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("MECHLAB_PORT", "9001")
    monkeypatch.setenv("MECHLAB_MAX_STEPS", "lots")
    monkeypatch.setenv("MECHLAB_LOG_LEVEL", "debug")
    settings = Settings.from_env()
    assert settings.port == 9001
    assert settings.max_steps == 0
    assert settings.log_level == "DEBUG"
