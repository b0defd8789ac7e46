"""Kafka producer shared by the fulfillment services."""

import json
from typing import Optional, Union

from confluent_kafka import KafkaException, Producer
from logging_utils.config import get_kafka_logger
from pydantic import BaseModel

logger = get_kafka_logger("kafka-utils")


class PublishError(Exception):
    """Raised when a message could not be handed to the broker."""


class MessageProducer:
    """Publishes JSON messages to Kafka topics.

    Messages are produced with ``acks=all`` by default so a delivery report is
    only positive once every in-sync replica has persisted the record.

    Attributes:
        producer: The underlying Kafka producer instance.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str,
        acks: str = "all",
    ):
        """Initialize the producer.

        Args:
            bootstrap_servers: Kafka bootstrap servers
            client_id: Producer client ID
            acks: The number of acknowledgments the producer requires
        """
        self.producer = Producer(
            {
                "bootstrap.servers": bootstrap_servers,
                "client.id": client_id,
                "acks": acks,
                "message.timeout.ms": 5000,
            }
        )

    def _delivery_callback(self, err, msg) -> None:
        """Handle delivery reports from Kafka.

        Args:
            err: Error that occurred during delivery
            msg: The delivered message
        """
        if err:
            logger.error(f"Message delivery failed | error={err} | topic={msg.topic()}")
        else:
            logger.debug(f"Message delivered | topic={msg.topic()} | partition={msg.partition()} | offset={msg.offset()}")

    def publish(self, topic: str, message: Union[BaseModel, dict], key: Optional[str] = None) -> None:
        """Publish a message to a topic.

        Args:
            topic: Kafka topic to publish to
            message: A pydantic model (serialized by alias) or a plain dict
            key: Optional partitioning key

        Raises:
            PublishError: If the message could not be enqueued.
        """
        if isinstance(message, BaseModel):
            value = message.model_dump_json(by_alias=True, exclude_none=True)
        else:
            value = json.dumps(message, default=str)

        try:
            self.producer.produce(
                topic=topic,
                key=key,
                value=value.encode("utf-8"),
                on_delivery=self._delivery_callback,
            )
            self.producer.poll(0)
        except BufferError as e:
            logger.warning(f"Producer buffer full, flushing | topic={topic}")
            self.producer.flush()
            raise PublishError(f"Producer buffer full while publishing to {topic}") from e
        except KafkaException as e:
            raise PublishError(f"Failed to publish to {topic}: {e}") from e

        logger.debug(f"Message published | topic={topic} | key={key}")

    def flush(self, timeout: float = 10.0) -> None:
        """Wait for all messages to be delivered.

        Args:
            timeout: Maximum time to wait in seconds
        """
        remaining = self.producer.flush(timeout)
        if remaining > 0:
            logger.warning(f"{remaining} messages still pending delivery")

    def close(self) -> None:
        """Flush outstanding messages before shutdown."""
        self.flush()
        logger.info("Producer closed")
