"""
Configuration Module

This module manages application configuration settings and environment
variables for the tracker service.

Features:
- Environment loading
- MongoDB settings
- Token verification settings
- Timer cadences
- Display defaults

Dependencies:
- certifi for SSL
- os for env
- dotenv for loading
"""

import certifi
import os
from dotenv import load_dotenv

load_dotenv()

# MongoDB Configuration
MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017")
DB_NAME = os.getenv("DB_NAME", "timekeep")
MONGODB_TLS = os.getenv("MONGODB_TLS", "false").lower() == "true"

MONGO_SETTINGS = {
    "serverSelectionTimeoutMS": 10000,
    "connectTimeoutMS": 20000,
    "maxPoolSize": 100,
    "retryWrites": True,
}
if MONGODB_TLS:
    MONGO_SETTINGS.update({"tls": True, "tlsCAFile": certifi.where()})

# Auth Configuration
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Server Configuration
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Timer Configuration (seconds)
TIMER_TICK_INTERVAL = float(os.getenv("TIMER_TICK_INTERVAL", "1"))
TIMER_CHECKPOINT_INTERVAL = float(os.getenv("TIMER_CHECKPOINT_INTERVAL", "10"))

# Display Configuration
CURRENCY = os.getenv("CURRENCY", "USD")
