"""Tests for delivery records, their transitions and the fulfillment handler."""

import re

import pytest
from pydantic import ValidationError

from delivery_service import __version__
from delivery_service.consumer import FulfillmentMessageHandler
from delivery_service.service import DeliveryNotFound, InvalidStatusTransition
from kafka_utils.producer import PublishError
from kafka_utils.schemas import DeliveryStatus, DeliveryStatusUpdate
from kafka_utils.topics import DELIVERY_STATUS, ORDER_FULFILLMENT


def test_version():
    """Testing package Version."""
    assert __version__ == "0.1.0"


def last_update(producer) -> DeliveryStatusUpdate:
    topic, update = producer.publish.call_args.args
    assert topic == DELIVERY_STATUS
    return update


def test_create_emits_pending_update(service, mock_producer, order_created):
    delivery = service.create_for_order(order_created)

    assert re.fullmatch(r"dlv-[0-9a-f]+", delivery.id)
    assert delivery.status == DeliveryStatus.PENDING
    assert delivery.address == order_created.shipping_address
    update = last_update(mock_producer)
    assert update.status == DeliveryStatus.PENDING
    assert update.delivery_id == delivery.id
    assert mock_producer.publish.call_args.kwargs["key"] == order_created.order_id


def test_duplicate_announcement_is_a_no_op(service, mock_producer, order_created):
    first = service.create_for_order(order_created)
    assert service.create_for_order(order_created) is None
    assert service.list() == [first]
    assert mock_producer.publish.call_count == 1


def test_status_walk_to_delivered(service, mock_producer, order_created):
    delivery = service.create_for_order(order_created)

    service.update_status(delivery.id, DeliveryStatus.IN_TRANSIT)
    assert last_update(mock_producer).status == DeliveryStatus.IN_TRANSIT

    service.update_status(delivery.id, DeliveryStatus.DELIVERED)
    assert delivery.delivered_at is not None
    assert last_update(mock_producer).status == DeliveryStatus.DELIVERED
    assert mock_producer.publish.call_count == 3


@pytest.mark.parametrize(
    "path,rejected",
    [
        ([], DeliveryStatus.DELIVERED),
        ([], DeliveryStatus.PENDING),
        ([DeliveryStatus.IN_TRANSIT, DeliveryStatus.DELIVERED], DeliveryStatus.FAILED),
        ([DeliveryStatus.FAILED], DeliveryStatus.IN_TRANSIT),
    ],
)
def test_invalid_transitions(service, mock_producer, order_created, path, rejected):
    delivery = service.create_for_order(order_created)
    for status in path:
        service.update_status(delivery.id, status)
    calls = mock_producer.publish.call_count

    with pytest.raises(InvalidStatusTransition):
        service.update_status(delivery.id, rejected)
    assert mock_producer.publish.call_count == calls


def test_update_unknown_delivery(service):
    with pytest.raises(DeliveryNotFound):
        service.update_status("dlv-missing", DeliveryStatus.IN_TRANSIT)


def test_publish_failure_keeps_status_change(service, mock_producer, order_created):
    delivery = service.create_for_order(order_created)
    mock_producer.publish.side_effect = PublishError("broker down")

    assert service.update_status(delivery.id, DeliveryStatus.IN_TRANSIT).status == DeliveryStatus.IN_TRANSIT


@pytest.mark.asyncio
async def test_handler_creates_delivery_from_wire_message(service, order_created):
    handler = FulfillmentMessageHandler(service)

    await handler(ORDER_FULFILLMENT, order_created.model_dump(mode="json", by_alias=True))

    delivery = service.get_for_order(order_created.order_id)
    assert delivery.customer_id == "cust-12345"


@pytest.mark.asyncio
async def test_handler_cancels_pending_delivery(service, order_created):
    handler = FulfillmentMessageHandler(service)
    delivery = service.create_for_order(order_created)

    await handler(ORDER_FULFILLMENT, {"type": "ORDER_CANCELLED", "orderId": order_created.order_id})

    assert delivery.status == DeliveryStatus.FAILED


@pytest.mark.asyncio
async def test_cancellation_leaves_shipped_delivery_alone(service, order_created):
    handler = FulfillmentMessageHandler(service)
    delivery = service.create_for_order(order_created)
    service.update_status(delivery.id, DeliveryStatus.IN_TRANSIT)

    await handler(ORDER_FULFILLMENT, {"type": "ORDER_CANCELLED", "orderId": order_created.order_id})

    assert delivery.status == DeliveryStatus.IN_TRANSIT


@pytest.mark.asyncio
async def test_handler_ignores_unknown_type(service, mock_producer):
    handler = FulfillmentMessageHandler(service)
    await handler(ORDER_FULFILLMENT, {"type": "ORDER_REFUNDED", "orderId": "o-1"})
    assert service.list() == []
    mock_producer.publish.assert_not_called()


@pytest.mark.asyncio
async def test_handler_rejects_malformed_order(service):
    handler = FulfillmentMessageHandler(service)
    with pytest.raises(ValidationError):
        await handler(ORDER_FULFILLMENT, {"type": "ORDER_CREATED", "orderId": "o-1"})
