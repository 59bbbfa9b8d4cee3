import asyncio

import pytest

from uptime_timeline.realtime.channel import EventChannel, Subscription


async def _drain(channel):
    return [item async for item in channel]


@pytest.mark.asyncio
async def test_channel_delivers_in_order_until_closed():
    channel: EventChannel[int] = EventChannel()
    for i in range(3):
        assert channel.publish(i)
    channel.close()
    assert await _drain(channel) == [0, 1, 2]


@pytest.mark.asyncio
async def test_full_channel_drops_instead_of_blocking():
    channel: EventChannel[int] = EventChannel(maxsize=2)
    assert channel.publish(1)
    assert channel.publish(2)
    assert not channel.publish(3)
    assert channel.dropped == 1
    channel.close()
    assert await _drain(channel) == [1, 2]


@pytest.mark.asyncio
async def test_publish_after_close_is_rejected():
    channel: EventChannel[int] = EventChannel()
    channel.close()
    channel.close()
    assert channel.closed
    assert not channel.publish(1)
    assert await _drain(channel) == []


@pytest.mark.asyncio
async def test_reader_wakes_on_publish():
    channel: EventChannel[str] = EventChannel()
    reader = asyncio.create_task(_drain(channel))
    await asyncio.sleep(0)
    channel.publish("a")
    channel.close()
    assert await asyncio.wait_for(reader, 1) == ["a"]


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent():
    calls = []

    async def release():
        calls.append(1)

    sub = Subscription("uptime_data", EventChannel(), release=release)
    assert sub.active
    await sub.unsubscribe()
    await sub.unsubscribe()
    assert calls == [1]
    assert not sub.active
    assert sub.channel.closed


@pytest.mark.asyncio
async def test_unsubscribe_closes_channel_even_if_release_fails():
    async def release():
        raise RuntimeError("broker gone")

    sub = Subscription("services", EventChannel(), release=release)
    with pytest.raises(RuntimeError):
        await sub.unsubscribe()
    assert sub.channel.closed
    assert not sub.active
