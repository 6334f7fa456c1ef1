"""Configuration for TourBot."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Discord
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN", "")

# Database (sqlite+aiosqlite locally, postgresql+asyncpg in production)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'tourbot.db'}",
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Read-only bracket API
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))

# Initial generation + one regeneration per round
BRACKET_GENERATION_LIMIT = int(os.getenv("BRACKET_GENERATION_LIMIT", "2"))


def _parse_ids(value: str) -> set[int]:
    if not value:
        return set()
    result = set()
    for x in value.split(","):
        try:
            result.add(int(x.strip()))
        except ValueError:
            continue
    return result


# User IDs that always pass tournament admin checks (bot owners)
ADMIN_USER_IDS = _parse_ids(os.getenv("ADMIN_USER_IDS", ""))
