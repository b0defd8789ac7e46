"""Test fixtures for the Kafka utilities tests."""

import json
from unittest.mock import MagicMock

import pytest
from confluent_kafka import Message


def make_message(value, topic="orders.fulfillment", partition=0, offset=0, error=None):
    """Build a mock Kafka message carrying ``value`` (dict, str or bytes)."""
    msg = MagicMock(spec=Message)
    if isinstance(value, dict):
        value = json.dumps(value)
    if isinstance(value, str):
        value = value.encode("utf-8")
    msg.value.return_value = value
    msg.error.return_value = error
    msg.topic.return_value = topic
    msg.partition.return_value = partition
    msg.offset.return_value = offset
    return msg


@pytest.fixture
def message_factory():
    return make_message


@pytest.fixture
def mock_dlq_producer():
    """A stand-in for the producer used for dead letters."""
    return MagicMock()
