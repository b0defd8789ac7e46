"""Kafka consumer loop shared by the fulfillment services."""

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from typing import Optional

from confluent_kafka import Consumer, KafkaError, KafkaException
from logging_utils.config import get_kafka_logger

from .producer import MessageProducer, PublishError
from .schemas import DeadLetter
from .topics import dead_letter_topic

logger = get_kafka_logger("kafka-utils")

MessageHandler = Callable[[str, dict], Awaitable[None]]

DEFAULT_CONSUMER_CONFIG = {
    "auto.offset.reset": "earliest",
    "enable.auto.commit": False,
    "session.timeout.ms": 30000,
    "max.poll.interval.ms": 300000,
}


class MessageConsumer:
    """Polls Kafka and hands decoded JSON messages to an async handler.

    Offsets are committed only after a message has been handled, which is the
    acknowledgement. A message that cannot be decoded or whose handler raises
    is published to the topic's dead-letter topic and then committed, so one
    bad record never stalls the partition.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        group_id: str,
        auto_offset_reset: str = "earliest",
        dead_letter_producer: Optional[MessageProducer] = None,
        poll_timeout: float = 1.0,
    ) -> None:
        """Initialize the consumer.

        Args:
            bootstrap_servers: Kafka bootstrap servers
            group_id: Consumer group ID
            auto_offset_reset: Where to start consuming from if no offset is stored
            dead_letter_producer: Producer used to dead-letter failed messages
            poll_timeout: Seconds to block in each poll
        """
        logger.info(f"Initializing consumer | bootstrap_servers={bootstrap_servers} | group_id={group_id}")
        config = DEFAULT_CONSUMER_CONFIG.copy()
        config.update(
            {
                "bootstrap.servers": bootstrap_servers,
                "group.id": group_id,
                "auto.offset.reset": auto_offset_reset,
            }
        )
        self.consumer = Consumer(config)
        self.dead_letter_producer = dead_letter_producer
        self.poll_timeout = poll_timeout
        self.stats = {"messages_processed": 0, "dead_lettered": 0, "errors": 0, "start_time": time.time()}
        self._running = False
        self._closed = False

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(self, topics: list[str]) -> None:
        """Subscribe to the specified Kafka topics."""
        logger.info(f"Subscribing to topics: {topics}")
        self.consumer.subscribe(topics)
        logger.info("Successfully subscribed to topics")

    def stop(self) -> None:
        """Ask the processing loop to exit after the current poll."""
        self._running = False

    async def process_messages(self, handler: MessageHandler) -> None:
        """Process incoming messages until stopped.

        The blocking poll runs in a worker thread so the event loop keeps
        serving HTTP requests; the handler itself runs on the loop.

        Args:
            handler: Coroutine called with the topic and the decoded payload
        """
        logger.info("Starting message processing loop")
        self._running = True
        try:
            while self._running:
                msg = await asyncio.to_thread(self.consumer.poll, self.poll_timeout)

                if msg is None:
                    continue

                if msg.error():
                    if msg.error().code() == KafkaError._PARTITION_EOF:
                        logger.debug("Reached end of partition")
                        continue
                    self.stats["errors"] += 1
                    if msg.error().fatal():
                        logger.error(f"Fatal Kafka error: {msg.error()}")
                        raise KafkaException(msg.error())
                    logger.warning(f"Kafka error: {msg.error()}")
                    continue

                await self._handle_message(msg, handler)
                self.consumer.commit(message=msg, asynchronous=False)
        finally:
            self._running = False
            self._log_status()
            self.close()

    async def _handle_message(self, msg, handler: MessageHandler) -> None:
        """Decode one message and run the handler, dead-lettering failures."""
        topic = msg.topic()
        raw = msg.value() or b""
        try:
            value = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(
                f"Failed to decode message | error={e} | topic={topic} | "
                f"partition={msg.partition()} | offset={msg.offset()}"
            )
            self._dead_letter(msg, e)
            return

        if not isinstance(value, dict):
            logger.error(f"Message is not a JSON object | topic={topic} | offset={msg.offset()}")
            self._dead_letter(msg, ValueError("message is not a JSON object"))
            return

        try:
            await handler(topic, value)
            self.stats["messages_processed"] += 1
        except Exception as e:
            logger.error(
                f"Error processing message | error={e} | error_type={type(e).__name__} | "
                f"topic={topic} | partition={msg.partition()} | offset={msg.offset()}"
            )
            self._dead_letter(msg, e)

    def _dead_letter(self, msg, error: Exception) -> None:
        """Publish a failed message to its dead-letter topic."""
        self.stats["errors"] += 1
        if self.dead_letter_producer is None:
            logger.warning(f"No dead-letter producer configured, dropping message | topic={msg.topic()}")
            return

        raw = msg.value() or b""
        letter = DeadLetter(
            topic=msg.topic(),
            partition=msg.partition(),
            offset=msg.offset(),
            error=f"{type(error).__name__}: {error}",
            payload=raw.decode("utf-8", errors="replace"),
        )
        try:
            self.dead_letter_producer.publish(dead_letter_topic(msg.topic()), letter)
            self.stats["dead_lettered"] += 1
        except PublishError as e:
            logger.error(f"Failed to dead-letter message | topic={msg.topic()} | error={e}")

    def _log_status(self) -> None:
        """Log consumer statistics."""
        runtime = time.time() - self.stats["start_time"]
        logger.info(
            f"Consumer status | messages_processed={self.stats['messages_processed']} | "
            f"dead_lettered={self.stats['dead_lettered']} | errors={self.stats['errors']} | "
            f"runtime_seconds={runtime:.2f}"
        )

    def close(self) -> None:
        """Close the consumer connection."""
        if self._closed:
            return
        self._closed = True
        self.consumer.close()
        logger.info("Consumer closed")
