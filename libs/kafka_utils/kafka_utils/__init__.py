"""Kafka messaging utilities for the order fulfillment services."""

from .admin import BrokerUnavailableError, check_kafka_connection, ensure_topics, require_broker
from .consumer import MessageConsumer
from .producer import MessageProducer, PublishError

__all__ = [
    "BrokerUnavailableError",
    "MessageConsumer",
    "MessageProducer",
    "PublishError",
    "check_kafka_connection",
    "ensure_topics",
    "require_broker",
]
