"""Tests for the order saga."""

from decimal import Decimal

import pytest

from kafka_utils.producer import PublishError
from kafka_utils.schemas import DeliveryStatus, DeliveryStatusUpdate, ItemAvailability, OrderCancelled, OrderCreated
from kafka_utils.topics import ORDER_FULFILLMENT, STOCK_RELEASES, STOCK_RESERVATIONS
from sales_service import __version__
from sales_service.repository import OrderNotFound
from sales_service.saga import InvalidStatusTransition, StockUnavailable
from sales_service.schemas import OrderStatus
from sales_service.stock_client import StockCheckTimeout


def test_version():
    """Testing package Version."""
    assert __version__ == "0.1.0"


def published(producer) -> list[tuple]:
    return [(call.args[0], call.args[1]) for call in producer.publish.call_args_list]


@pytest.mark.asyncio
async def test_create_order_persists_and_fans_out(saga, repository, mock_producer, order_request):
    order = await saga.create_order(order_request)

    assert repository.get(order.id) is order
    assert order.status == OrderStatus.PENDING_SHIPMENT
    assert order.total_amount == Decimal("212.97")
    assert [line.total_price for line in order.items] == [Decimal("199.98"), Decimal("12.99")]

    (reserve_topic, reservation), (fulfillment_topic, created) = published(mock_producer)
    assert reserve_topic == STOCK_RESERVATIONS
    assert reservation.order_id == order.id
    assert [(i.product_id, i.quantity) for i in reservation.items] == [("prod-001", 2), ("prod-003", 1)]
    assert fulfillment_topic == ORDER_FULFILLMENT
    assert isinstance(created, OrderCreated)
    assert created.order_id == order.id
    assert created.shipping_address == order_request.shipping_address
    assert created.total_amount == Decimal("212.97")


@pytest.mark.asyncio
async def test_unavailable_items_abort_before_persisting(
    saga, repository, stock_client, mock_producer, order_request, response_factory
):
    stock_client.check_availability.return_value = response_factory(
        ItemAvailability(product_id="prod-001", requested=2, available=True, current_stock=50),
        ItemAvailability(product_id="prod-003", requested=1, available=False, current_stock=0, reason="insufficient stock"),
    )

    with pytest.raises(StockUnavailable) as exc_info:
        await saga.create_order(order_request)

    assert [i.product_id for i in exc_info.value.unavailable_items] == ["prod-003"]
    assert len(repository) == 0
    mock_producer.publish.assert_not_called()


@pytest.mark.asyncio
async def test_stock_check_timeout_aborts(saga, repository, stock_client, mock_producer, order_request):
    stock_client.check_availability.side_effect = StockCheckTimeout("inv-x", 10.0)

    with pytest.raises(StockCheckTimeout):
        await saga.create_order(order_request)

    assert len(repository) == 0
    mock_producer.publish.assert_not_called()


@pytest.mark.asyncio
async def test_publish_failures_do_not_fail_the_order(saga, repository, mock_producer, order_request):
    """The order stays committed when fulfillment messages cannot be sent."""
    mock_producer.publish.side_effect = PublishError("broker down")

    order = await saga.create_order(order_request)

    assert repository.get(order.id) is order
    assert mock_producer.publish.call_count == 2


@pytest.mark.asyncio
async def test_cancel_pending_order_releases_stock(saga, mock_producer, order_request):
    order = await saga.create_order(order_request)
    mock_producer.reset_mock()

    cancelled = saga.update_status(order.id, OrderStatus.CANCELLED)

    assert cancelled.status == OrderStatus.CANCELLED
    (release_topic, release), (fulfillment_topic, announcement) = published(mock_producer)
    assert release_topic == STOCK_RELEASES
    assert release.order_id == order.id
    assert fulfillment_topic == ORDER_FULFILLMENT
    assert isinstance(announcement, OrderCancelled)


@pytest.mark.asyncio
async def test_cancel_survives_publish_failure(saga, mock_producer, order_request):
    order = await saga.create_order(order_request)
    mock_producer.publish.side_effect = PublishError("broker down")

    assert saga.update_status(order.id, OrderStatus.CANCELLED).status == OrderStatus.CANCELLED


@pytest.mark.asyncio
async def test_cannot_cancel_shipped_order(saga, order_request):
    order = await saga.create_order(order_request)
    saga.update_status(order.id, OrderStatus.SHIPPED)

    with pytest.raises(InvalidStatusTransition):
        saga.update_status(order.id, OrderStatus.CANCELLED)


def test_update_status_unknown_order(saga):
    with pytest.raises(OrderNotFound):
        saga.update_status("missing", OrderStatus.SHIPPED)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "delivery_status,order_status",
    [
        (DeliveryStatus.PENDING, OrderStatus.PENDING_SHIPMENT),
        (DeliveryStatus.IN_TRANSIT, OrderStatus.SHIPPED),
        (DeliveryStatus.DELIVERED, OrderStatus.DELIVERED),
        (DeliveryStatus.FAILED, OrderStatus.CANCELLED),
    ],
)
async def test_delivery_status_maps_onto_order(saga, order_request, delivery_status, order_status):
    order = await saga.create_order(order_request)

    updated = saga.apply_delivery_status(
        DeliveryStatusUpdate(order_id=order.id, status=delivery_status, delivery_id="dlv-1")
    )

    assert updated.status == order_status


@pytest.mark.asyncio
async def test_delivery_status_overwrites_current_status(saga, order_request):
    order = await saga.create_order(order_request)
    saga.apply_delivery_status(DeliveryStatusUpdate(order_id=order.id, status=DeliveryStatus.DELIVERED, delivery_id="dlv-1"))
    saga.apply_delivery_status(DeliveryStatusUpdate(order_id=order.id, status=DeliveryStatus.IN_TRANSIT, delivery_id="dlv-1"))

    assert order.status == OrderStatus.SHIPPED


@pytest.mark.asyncio
async def test_delivery_status_ignores_manual_lifecycle(saga, order_request):
    """Propagated statuses bypass the manual transition table in both directions."""
    shipped = await saga.create_order(order_request)
    saga.update_status(shipped.id, OrderStatus.SHIPPED)
    saga.apply_delivery_status(DeliveryStatusUpdate(order_id=shipped.id, status=DeliveryStatus.FAILED, delivery_id="dlv-1"))
    assert shipped.status == OrderStatus.CANCELLED

    cancelled = await saga.create_order(order_request)
    saga.update_status(cancelled.id, OrderStatus.CANCELLED)
    saga.apply_delivery_status(DeliveryStatusUpdate(order_id=cancelled.id, status=DeliveryStatus.PENDING, delivery_id="dlv-2"))
    assert cancelled.status == OrderStatus.PENDING_SHIPMENT


def test_delivery_status_for_unknown_order(saga):
    update = DeliveryStatusUpdate(order_id="missing", status=DeliveryStatus.DELIVERED, delivery_id="dlv-1")
    assert saga.apply_delivery_status(update) is None
