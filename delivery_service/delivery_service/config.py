"""Environment configuration for the Delivery Service."""

import os

SERVICE_NAME = "delivery-service"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092")
KAFKA_CONSUMER_GROUP = os.getenv("KAFKA_CONSUMER_GROUP", "delivery-service-group")
