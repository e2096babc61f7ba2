"""
updater.py — Background worker that keeps the Match Store up to date.

Run as a standalone process:
    python -m keeper.updater

Environment variables:
    STEAM_ID                  — tracked player (Steam ID64 or account id; required)
    OPENDOTA_API_KEY          — paid API key (optional)
    DATABASE_URL              — see keeper/database.py
    POLL_INTERVAL_MINUTES     — how often to poll for new matches (default: 15)
    MAX_REQUESTS_PER_MINUTE   — self-imposed rate limit (default: 30)
    PARSE_BATCH_SIZE          — matches parsed per cycle (default: 5)
    PARSE_WAIT_SECONDS        — delay between a parse request and the fetch (default: 5)
"""

import asyncio
import logging
import os
import time
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path.cwd() / ".env")

from keeper.database import get_engine, init_db  # noqa: E402
from keeper.errors import KeeperError  # noqa: E402
from keeper.ingestion import parse_pending, refresh_matches  # noqa: E402
from keeper.match_db import MatchStore  # noqa: E402

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

STEAM_ID: str = os.getenv("STEAM_ID", "")
POLL_INTERVAL_MINUTES: int = int(os.getenv("POLL_INTERVAL_MINUTES", "15"))
MAX_REQUESTS_PER_MINUTE: int = int(os.getenv("MAX_REQUESTS_PER_MINUTE", "30"))
PARSE_BATCH_SIZE: int = int(os.getenv("PARSE_BATCH_SIZE", "5"))

logger = logging.getLogger("updater")


# ---------------------------------------------------------------------------
# Rate limiter — minimum delay between API calls
# ---------------------------------------------------------------------------

class RateLimiter:
    """Выдерживает минимальную паузу между запросами исходя из max_per_minute."""

    def __init__(self, max_per_minute: int) -> None:
        self._min_delay = 60.0 / max(max_per_minute, 1)
        self._last_call: float = 0.0

    async def acquire(self) -> None:
        """Спит при необходимости, чтобы не превысить max_per_minute."""
        elapsed = time.monotonic() - self._last_call
        if elapsed < self._min_delay:
            await asyncio.sleep(self._min_delay - elapsed)
        self._last_call = time.monotonic()


# ---------------------------------------------------------------------------
# One polling cycle
# ---------------------------------------------------------------------------

async def run_cycle(store: MatchStore, steam_id: str, rate_limiter: RateLimiter) -> None:
    """Обновляет последние матчи, затем разбирает пачку ожидающих."""
    await rate_limiter.acquire()
    try:
        await refresh_matches(store, steam_id)
    except KeeperError as exc:
        logger.error("[updater] Failed to refresh matches: %s", exc)

    parsed = await parse_pending(store, steam_id, limit=PARSE_BATCH_SIZE, rate_limiter=rate_limiter)
    logger.info("[updater] Cycle done: %d match(es) parsed", parsed)


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

async def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if not STEAM_ID:
        logger.error("[updater] STEAM_ID is not set, nothing to track")
        return

    logger.info("=" * 60)
    logger.info("Match updater starting")
    logger.info("  STEAM_ID                = %s", STEAM_ID)
    logger.info("  POLL_INTERVAL_MINUTES   = %d", POLL_INTERVAL_MINUTES)
    logger.info("  MAX_REQUESTS_PER_MINUTE = %d", MAX_REQUESTS_PER_MINUTE)
    logger.info("  PARSE_BATCH_SIZE        = %d", PARSE_BATCH_SIZE)
    logger.info("=" * 60)

    engine = get_engine()
    init_db(engine)
    store = MatchStore(engine)
    rate_limiter = RateLimiter(MAX_REQUESTS_PER_MINUTE)

    while True:
        loop_start = time.monotonic()

        try:
            await run_cycle(store, STEAM_ID, rate_limiter)
        except Exception as exc:
            logger.error("[updater] Unhandled error in cycle: %s", exc, exc_info=True)

        elapsed = time.monotonic() - loop_start
        sleep_sec = max(0.0, POLL_INTERVAL_MINUTES * 60 - elapsed)
        logger.info(
            "[updater] Sleeping %.0f s until next cycle (cycle took %.1f s)...",
            sleep_sec, elapsed,
        )
        await asyncio.sleep(sleep_sec)


if __name__ == "__main__":
    asyncio.run(main())
