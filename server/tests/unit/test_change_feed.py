"""Unit tests for the in-process change feed."""

import asyncio

import pytest

from storefront.services.change_feed import ChangeFeed


@pytest.mark.asyncio
async def test_subscriber_receives_watched_tables_only():
    """Test table filtering per subscriber."""
    feed = ChangeFeed()

    async with feed.subscribe({"products"}) as subscription:
        feed.publish("tours", "UPDATE", "tour-1")
        feed.publish("products", "INSERT", "product-1")
        change = await asyncio.wait_for(subscription.get(), timeout=1)

    assert change.to_dict()["table"] == "products"
    assert change.event == "INSERT"
    assert change.id == "product-1"
    assert change.occurred_at.endswith("Z")


@pytest.mark.asyncio
async def test_every_subscriber_gets_a_copy():
    """Test fan-out to several subscribers."""
    feed = ChangeFeed()
    first = feed.subscribe()
    second = feed.subscribe({"tour_dates"})

    feed.publish("tour_dates", "UPDATE", "date-1")

    assert (await first.get()).id == "date-1"
    assert (await second.get()).id == "date-1"
    assert feed.subscriber_count == 2

    first.close()
    second.close()
    assert feed.subscriber_count == 0


@pytest.mark.asyncio
async def test_slow_subscriber_drops_oldest_events():
    """Test that a full queue keeps the newest events."""
    feed = ChangeFeed(queue_size=2)
    subscription = feed.subscribe()

    for row_id in ("a", "b", "c"):
        feed.publish("tours", "UPDATE", row_id)

    assert [(await subscription.get()).id for _ in range(2)] == ["b", "c"]
    subscription.close()


@pytest.mark.asyncio
async def test_async_iteration():
    """Test consuming a subscription with async for."""
    feed = ChangeFeed()
    received = []

    async with feed.subscribe({"tours"}) as subscription:
        feed.publish("tours", "INSERT", "tour-1")
        feed.publish("tours", "DELETE", "tour-1")
        async for change in subscription:
            received.append(change.event)
            if len(received) == 2:
                break

    assert received == ["INSERT", "DELETE"]
    assert feed.subscriber_count == 0


def test_unknown_tables_rejected():
    """Test that only watched tables can be published or subscribed to."""
    feed = ChangeFeed()

    with pytest.raises(ValueError):
        feed.publish("orders", "INSERT", "order-1")
    with pytest.raises(ValueError):
        feed.subscribe({"tours", "tour_bookings"})
