"""Tests for the correlated stock-check client."""

import asyncio
from unittest.mock import MagicMock

import pytest

from kafka_utils.schemas import ItemAvailability, StockCheckRequest, StockItem
from kafka_utils.topics import STOCK_CHECK_REQUESTS
from sales_service.stock_client import StockCheckClient, StockCheckTimeout


async def _wait_for_request(producer: MagicMock) -> StockCheckRequest:
    while not producer.publish.called:
        await asyncio.sleep(0)
    topic, request = producer.publish.call_args.args
    assert topic == STOCK_CHECK_REQUESTS
    return request


@pytest.mark.asyncio
async def test_reply_resolves_matching_request(mock_producer, response_factory):
    client = StockCheckClient(mock_producer, timeout=1.0)
    task = asyncio.create_task(client.check_availability([StockItem(product_id="prod-001", quantity=1)]))

    request = await _wait_for_request(mock_producer)
    assert request.correlation_id.startswith("inv-")
    assert mock_producer.publish.call_args.kwargs["key"] == request.correlation_id
    assert client.pending_count == 1

    reply = response_factory(
        ItemAvailability(product_id="prod-001", requested=1, available=True, current_stock=5),
        correlation_id=request.correlation_id,
    )
    assert client.resolve(reply) is True

    assert await task == reply
    assert client.pending_count == 0


@pytest.mark.asyncio
async def test_reply_with_unknown_correlation_id_is_discarded(mock_producer, response_factory):
    client = StockCheckClient(mock_producer, timeout=1.0)
    assert client.resolve(response_factory(correlation_id="inv-nobody")) is False


@pytest.mark.asyncio
async def test_timeout_clears_pending_entry(mock_producer, response_factory):
    client = StockCheckClient(mock_producer, timeout=0.01)

    with pytest.raises(StockCheckTimeout) as exc_info:
        await client.check_availability([StockItem(product_id="prod-001", quantity=1)])

    assert client.pending_count == 0
    assert "timeout" in str(exc_info.value)

    late_reply = response_factory(correlation_id=exc_info.value.correlation_id)
    assert client.resolve(late_reply) is False


@pytest.mark.asyncio
async def test_duplicate_reply_resolves_once(mock_producer, response_factory):
    client = StockCheckClient(mock_producer, timeout=1.0)
    task = asyncio.create_task(client.check_availability([StockItem(product_id="prod-001", quantity=1)]))
    request = await _wait_for_request(mock_producer)

    reply = response_factory(correlation_id=request.correlation_id)
    assert client.resolve(reply) is True
    assert client.resolve(reply) is False
    await task


@pytest.mark.asyncio
async def test_concurrent_requests_get_their_own_replies(mock_producer, response_factory):
    client = StockCheckClient(mock_producer, timeout=1.0)
    first = asyncio.create_task(client.check_availability([StockItem(product_id="prod-001", quantity=1)]))
    second = asyncio.create_task(client.check_availability([StockItem(product_id="prod-002", quantity=1)]))

    while mock_producer.publish.call_count < 2:
        await asyncio.sleep(0)
    requests = {call.args[1].items[0].product_id: call.args[1] for call in mock_producer.publish.call_args_list}

    client.resolve(response_factory(correlation_id=requests["prod-002"].correlation_id))
    client.resolve(response_factory(correlation_id=requests["prod-001"].correlation_id))

    assert (await first).correlation_id == requests["prod-001"].correlation_id
    assert (await second).correlation_id == requests["prod-002"].correlation_id
