"""Configuration for the GreenRelay backend"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
_repo_root = Path(__file__).parent.parent.resolve()
_env_file = _repo_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# Base directory
BASE_DIR = Path(__file__).parent.resolve()

APP_VERSION = "1.0.0"

# MQTT Broker
MQTT_BROKER = os.getenv("MQTT_BROKER", "localhost")
MQTT_PORT = int(os.getenv("MQTT_PORT", "1883"))
MQTT_KEEPALIVE = int(os.getenv("MQTT_KEEPALIVE", "60"))
MQTT_CLIENT_ID = os.getenv("MQTT_CLIENT_ID", "greenrelay-backend")
MQTT_USERNAME = os.getenv("MQTT_USERNAME", "")
MQTT_PASSWORD = os.getenv("MQTT_PASSWORD", "")

# Bus topics
TOPIC_REGISTRATION = os.getenv("TOPIC_REGISTRATION", "green-tech/credentials")
TOPIC_RELAY_STATUS = os.getenv("TOPIC_RELAY_STATUS", "green-tech/relay-status")
TOPIC_DEVICE_STATUS = os.getenv("TOPIC_DEVICE_STATUS", "green-tech/device-status")
TOPIC_RELAY_CONTROL = os.getenv("TOPIC_RELAY_CONTROL", "green-tech/relay-control")

# Store
# "firestore" in production, "memory" for local development without credentials
STORE_BACKEND = os.getenv("STORE_BACKEND", "firestore").lower()

_default_creds = str(_repo_root / "firebase-key.json")
FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH", _default_creds)
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "greentech")

USERS_COLLECTION = os.getenv("USERS_COLLECTION", "users")
DEVICE_STATUS_COLLECTION = os.getenv("DEVICE_STATUS_COLLECTION", "device_status")

# Scheduler
# Installation timezone: schedules are evaluated in local wall-clock time
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "Africa/Cairo")
SCHEDULER_INTERVAL_SECONDS = int(os.getenv("SCHEDULER_INTERVAL_SECONDS", "60"))

# Device status retention (manual purge only)
STATUS_RETENTION_SECONDS = int(os.getenv("STATUS_RETENTION_SECONDS", "3600"))

# Password hashing
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# HTTP / WebSocket server
HTTP_HOST = os.getenv("HTTP_HOST", "0.0.0.0")
HTTP_PORT = int(os.getenv("PORT", os.getenv("HTTP_PORT", "3000")))

# A browser that cannot take a live update within this bound is dropped
WEBSOCKET_SEND_TIMEOUT_SECONDS = float(os.getenv("WEBSOCKET_SEND_TIMEOUT_SECONDS", "5"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "logs/greenrelay.log")

# Debug
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
