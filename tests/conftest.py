"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the TESTING environment variable so the .env file is not loaded and
clears the shared Redis settings so every check runs in-process unless a
test wires a store explicitly.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ["APP_ENV"] = "testing"

os.environ.pop("RATE_LIMIT_REDIS_URL", None)
os.environ.pop("RATE_LIMIT_REDIS_TOKEN", None)
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")
