"""Environment configuration for the Inventory Service."""

import os

SERVICE_NAME = "inventory-service"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092")
KAFKA_CONSUMER_GROUP = os.getenv("KAFKA_CONSUMER_GROUP", "inventory-service-group")
SEED_PRODUCTS = os.getenv("SEED_PRODUCTS", "true").lower() == "true"
