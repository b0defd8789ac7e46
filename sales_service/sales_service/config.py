"""Environment configuration for the Sales Service."""

import os

SERVICE_NAME = "sales-service"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092")
KAFKA_CONSUMER_GROUP = os.getenv("KAFKA_CONSUMER_GROUP", "sales-service-group")
STOCK_CHECK_TIMEOUT_SECONDS = float(os.getenv("STOCK_CHECK_TIMEOUT_SECONDS", "10"))
