"""Tests for the pending delivery queue and the reply registry."""
from __future__ import annotations

import asyncio

import pytest

from agentmesh.core.errors import TaskTimeoutError
from agentmesh.core.message_bus import PendingQueue, ReplyRegistry
from agentmesh.core.models import AgentMessage, MessageType


def reply_to(correlation_id: str) -> AgentMessage:
    return AgentMessage(
        sender="worker",
        recipient="orchestrator",
        type=MessageType.RESPONSE,
        payload={"ok": True},
        correlation_id=correlation_id,
    )


def test_pending_queue_pops_batches_in_order() -> None:
    queue = PendingQueue()
    messages = [AgentMessage(sender="o", recipient="a", type=MessageType.DATA, payload=i) for i in range(5)]
    for message in messages:
        queue.push("a", message)

    first = queue.pop_batch(2)
    assert [m.payload for _, m in first] == [0, 1]
    assert len(queue) == 3
    assert [m.payload for _, m in queue.pop_batch(10)] == [2, 3, 4]
    assert queue.pop_batch(3) == []


@pytest.mark.anyio
async def test_reply_resolves_and_deregisters() -> None:
    registry = ReplyRegistry()
    future = registry.open("corr-1", "worker", timeout=1.0)
    assert registry.is_pending("corr-1")

    assert registry.resolve(reply_to("corr-1")) is True
    message = await future
    assert message.payload == {"ok": True}
    await asyncio.sleep(0)
    assert len(registry) == 0
    assert registry.resolve(reply_to("corr-1")) is False


@pytest.mark.anyio
async def test_uncorrelated_messages_are_ignored() -> None:
    registry = ReplyRegistry()
    future = registry.open("corr-1", "worker", timeout=1.0)

    assert registry.resolve(reply_to("other")) is False
    assert registry.resolve(AgentMessage(sender="w", recipient="o", type=MessageType.DATA)) is False
    assert not future.done()
    future.cancel()


@pytest.mark.anyio
async def test_reply_times_out_exactly_once() -> None:
    registry = ReplyRegistry()
    future = registry.open("corr-1", "worker", timeout=0.05)

    with pytest.raises(TaskTimeoutError) as excinfo:
        await future
    assert excinfo.value.correlation_id == "corr-1"
    assert len(registry) == 0
    assert registry.resolve(reply_to("corr-1")) is False


@pytest.mark.anyio
async def test_cancelled_waiter_is_removed() -> None:
    registry = ReplyRegistry()
    future = registry.open("corr-1", "worker", timeout=5.0)
    future.cancel()
    await asyncio.sleep(0)

    assert len(registry) == 0


@pytest.mark.anyio
async def test_duplicate_correlation_id_is_rejected() -> None:
    registry = ReplyRegistry()
    future = registry.open("corr-1", "worker", timeout=1.0)
    with pytest.raises(ValueError):
        registry.open("corr-1", "worker", timeout=1.0)
    future.cancel()


@pytest.mark.anyio
async def test_fail_all_fails_every_waiter() -> None:
    registry = ReplyRegistry()
    futures = [registry.open(f"corr-{i}", "worker", timeout=5.0) for i in range(3)]

    assert registry.fail_all(lambda cid: RuntimeError(cid)) == 3
    for index, future in enumerate(futures):
        with pytest.raises(RuntimeError, match=f"corr-{index}"):
            await future
    await asyncio.sleep(0)
    assert len(registry) == 0


@pytest.mark.anyio
async def test_commands_never_complete_a_reply() -> None:
    registry = ReplyRegistry()
    future = registry.open("corr-1", "worker", timeout=1.0)
    forwarded = AgentMessage(
        sender="worker",
        recipient="sink",
        type=MessageType.COMMAND,
        payload={"action": "x"},
        correlation_id="corr-1",
    )

    assert registry.resolve(forwarded) is False
    assert not future.done()
    assert registry.resolve(reply_to("corr-1")) is True
