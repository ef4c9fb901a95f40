"""Unit tests for client/single_flight.py."""

from __future__ import annotations

import asyncio

import pytest

from client.single_flight import SingleFlight


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_call() -> None:
    flight: SingleFlight[str] = SingleFlight()
    gate = asyncio.Event()
    calls = 0

    async def operation() -> str:
        nonlocal calls
        calls += 1
        await gate.wait()
        return "token-1"

    tasks = [asyncio.create_task(flight.run(operation)) for _ in range(5)]
    await asyncio.sleep(0)
    assert flight.pending
    assert flight.waiter_count == 4

    gate.set()
    results = await asyncio.gather(*tasks)

    assert results == ["token-1"] * 5
    assert calls == 1
    assert not flight.pending
    assert flight.waiter_count == 0


@pytest.mark.asyncio
async def test_failure_reaches_every_caller() -> None:
    flight: SingleFlight[str] = SingleFlight()
    gate = asyncio.Event()

    async def operation() -> str:
        await gate.wait()
        raise RuntimeError("refresh rejected")

    tasks = [asyncio.create_task(flight.run(operation)) for _ in range(3)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*tasks, return_exceptions=True)

    assert len(results) == 3
    assert all(isinstance(r, RuntimeError) for r in results)
    assert not flight.pending


@pytest.mark.asyncio
async def test_next_run_after_settle_starts_fresh_call() -> None:
    flight: SingleFlight[int] = SingleFlight()
    counter = 0

    async def operation() -> int:
        nonlocal counter
        counter += 1
        return counter

    assert await flight.run(operation) == 1
    assert await flight.run(operation) == 2


@pytest.mark.asyncio
async def test_failed_run_does_not_poison_the_next() -> None:
    flight: SingleFlight[str] = SingleFlight()

    async def failing() -> str:
        raise RuntimeError("boom")

    async def working() -> str:
        return "ok"

    with pytest.raises(RuntimeError):
        await flight.run(failing)
    assert await flight.run(working) == "ok"


@pytest.mark.asyncio
async def test_cancelled_waiter_does_not_block_others() -> None:
    flight: SingleFlight[str] = SingleFlight()
    gate = asyncio.Event()

    async def operation() -> str:
        await gate.wait()
        return "done"

    leader = asyncio.create_task(flight.run(operation))
    quitter = asyncio.create_task(flight.run(operation))
    stayer = asyncio.create_task(flight.run(operation))
    await asyncio.sleep(0)

    quitter.cancel()
    await asyncio.sleep(0)
    gate.set()

    assert await leader == "done"
    assert await stayer == "done"
    assert quitter.cancelled()
