"""Broker administration helpers: connectivity checks and topic creation."""

from confluent_kafka import KafkaError, KafkaException
from confluent_kafka.admin import AdminClient, NewTopic
from logging_utils.config import get_kafka_logger

from .topics import dead_letter_topic

logger = get_kafka_logger("kafka-utils")


class BrokerUnavailableError(RuntimeError):
    """Raised when the broker cannot be reached at startup."""


def check_kafka_connection(bootstrap_servers: str, timeout: float = 5.0) -> bool:
    """Check if Kafka connection is available.

    Returns:
        bool: True if Kafka is accessible, False otherwise.
    """
    try:
        admin = AdminClient({"bootstrap.servers": bootstrap_servers})
        return bool(admin.list_topics(timeout=timeout))
    except Exception as e:
        logger.error(f"Kafka connection failed: {e}")
        return False


def require_broker(bootstrap_servers: str, timeout: float = 5.0) -> None:
    """Fail fast when the broker is unreachable.

    Raises:
        BrokerUnavailableError: If no cluster metadata could be fetched.
    """
    if not check_kafka_connection(bootstrap_servers, timeout=timeout):
        raise BrokerUnavailableError(f"Kafka broker unreachable at {bootstrap_servers}")


def ensure_topics(
    bootstrap_servers: str,
    topics: list[str],
    num_partitions: int = 1,
    replication_factor: int = 1,
    with_dead_letters: bool = True,
) -> None:
    """Create the given topics (and their dead-letter topics) if missing."""
    names = list(topics)
    if with_dead_letters:
        names += [dead_letter_topic(topic) for topic in topics]

    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    futures = admin.create_topics(
        [NewTopic(name, num_partitions=num_partitions, replication_factor=replication_factor) for name in names]
    )
    for name, future in futures.items():
        try:
            future.result()
            logger.info(f"Created topic {name}")
        except KafkaException as e:
            if e.args and e.args[0].code() == KafkaError.TOPIC_ALREADY_EXISTS:
                continue
            raise
