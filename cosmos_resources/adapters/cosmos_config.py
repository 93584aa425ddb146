"""
Cosmos DB configuration — all Cosmos-specific env vars.

Kept apart from config.py so the option models stay free of
os.getenv() calls.  Anything that needs raw connection details
imports from here.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv(override=False)

# ---------------------------------------------------------------------------
# Cosmos DB NoSQL settings
# ---------------------------------------------------------------------------

COSMOS_NOSQL_ENDPOINT = os.getenv("COSMOS_NOSQL_ENDPOINT", "")
COSMOS_NOSQL_KEY = os.getenv("COSMOS_NOSQL_KEY", "")
COSMOS_NOSQL_DATABASE = os.getenv("COSMOS_NOSQL_DATABASE", "")
COSMOS_NOSQL_DATABASE_THROUGHPUT = int(os.getenv("COSMOS_NOSQL_DATABASE_THROUGHPUT", "1000"))
COSMOS_CONTINUATION_TOKEN_LIMIT_KB = os.getenv("COSMOS_CONTINUATION_TOKEN_LIMIT_KB", "")

# ---------------------------------------------------------------------------
# Change feed settings
# ---------------------------------------------------------------------------

COSMOS_FEED_POLL_DELAY_MS = int(os.getenv("COSMOS_FEED_POLL_DELAY_MS", "1000"))
COSMOS_FEED_MAX_ITEMS = int(os.getenv("COSMOS_FEED_MAX_ITEMS", "100"))
COSMOS_FEED_MAX_PARALLELISM = int(os.getenv("COSMOS_FEED_MAX_PARALLELISM", "1"))

# ---------------------------------------------------------------------------
# Local emulator
# ---------------------------------------------------------------------------

COSMOS_EMULATOR_ENDPOINT = "https://localhost:8081"
# Well-known, publicly documented emulator master key.
COSMOS_EMULATOR_KEY = (
    "C2y6yDjf5/R+ob0N8A7Cgv30VRDJIWEHLM+4QDU5DE2nQ9nDuVTqobD4b8mGGyPMbIZnqyMsEcaGQy67XIw/Jw=="
)

# ---------------------------------------------------------------------------
# Required-var tuples (used by startup checks)
# ---------------------------------------------------------------------------

COSMOS_REQUIRED_VARS: tuple[str, ...] = (
    "COSMOS_NOSQL_ENDPOINT", "COSMOS_NOSQL_DATABASE",
)
