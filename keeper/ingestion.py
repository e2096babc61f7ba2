"""
ingestion.py — Pulls the tracked player's matches from OpenDota into the Match Store.

  refresh_matches   — latest games, stored as 'unparsed'
  backfill_matches  — older history, page by page
  parse_match       — per-minute enrichment of one match:
                        parsing -> request parse -> wait -> fetch details ->
                        CS series, every player's net worth, lane role and
                        partner, first purchase of catalogued items -> parsed
                      Any failure leaves the match 'failed' and re-raises.
"""

import asyncio
import logging
import os
from typing import Optional

from keeper import opendota_client
from keeper.config import (
    LANE_NETWORTH_MINUTE,
    RADIANT_SLOT_LIMIT,
    ROLE_CARRY,
    ROLE_HARD_SUPPORT,
    ROLE_MID,
    ROLE_OFFLANE,
    ROLE_SOFT_SUPPORT,
    ROLE_UNKNOWN,
)
from keeper.errors import OpenDotaError
from keeper.items import get_item_id
from keeper.schemas import Match, ParseState

logger = logging.getLogger(__name__)

PARSE_WAIT_SECONDS: float = float(os.getenv("PARSE_WAIT_SECONDS", "5"))

BACKFILL_PAGE_SIZE = 100
BACKFILL_MAX_PAGES = 12

# Значения lane_role в OpenDota
_LANE_SAFE = 1
_LANE_MID = 2
_LANE_OFF = 3

# линия -> (роль кора линии, роль её саппортов)
_LANE_ROLES: dict[int, tuple[int, int]] = {
    _LANE_SAFE: (ROLE_CARRY, ROLE_HARD_SUPPORT),
    _LANE_OFF: (ROLE_OFFLANE, ROLE_SOFT_SUPPORT),
}

_STAT_FIELDS = (
    "kills", "deaths", "assists", "xp_per_min", "gold_per_min", "last_hits",
    "denies", "hero_damage", "tower_damage", "hero_healing",
)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------

def parse_opendota_match(raw: dict) -> Match:
    """recentMatches / players/{id}/matches entry -> unparsed Match.

    Stats the endpoint leaves out (older matches, private data) become 0.
    """
    fields = {name: raw.get(name) or 0 for name in _STAT_FIELDS}
    return Match(
        match_id=raw["match_id"],
        hero_id=raw.get("hero_id") or 0,
        start_time=raw.get("start_time") or 0,
        duration=raw.get("duration") or 0,
        game_mode=raw.get("game_mode") or 0,
        lobby_type=raw.get("lobby_type") or 0,
        radiant_win=bool(raw.get("radiant_win")),
        player_slot=raw.get("player_slot") or 0,
        parse_state=ParseState.UNPARSED,
        **fields,
    )


def _is_radiant(player: dict) -> bool:
    return (player.get("player_slot") or 0) < RADIANT_SLOT_LIMIT


def _networth_at(player: dict, minute: int) -> int:
    gold_t = player.get("gold_t") or []
    return gold_t[minute] if minute < len(gold_t) else 0


def detect_lane_role(players: list[dict], player_slot: int) -> tuple[int, Optional[int]]:
    """(role, partner_slot) of the player in `player_slot`.

    Mid lane is role 2. In the safe and off lanes the teammate with the highest
    net worth at minute 10 is the core (1 / 3); the others are supports (5 / 4)
    and their partner is that core. Jungle or unknown lane gives role 0.
    """
    me = next((p for p in players if p.get("player_slot") == player_slot), None)
    if me is None:
        return ROLE_UNKNOWN, None

    lane = me.get("lane_role")
    if lane == _LANE_MID:
        return ROLE_MID, None
    if lane not in _LANE_ROLES:
        return ROLE_UNKNOWN, None

    lane_mates = [
        p for p in players
        if p.get("lane_role") == lane and _is_radiant(p) == _is_radiant(me)
    ]
    core = max(lane_mates, key=lambda p: _networth_at(p, LANE_NETWORTH_MINUTE))
    core_role, support_role = _LANE_ROLES[lane]
    if core.get("player_slot") == player_slot:
        return core_role, None
    return support_role, core.get("player_slot")


def first_item_purchases(purchase_log: list[dict]) -> dict[int, int]:
    """item_id -> время первой покупки (с), только для предметов из каталога."""
    timings: dict[int, int] = {}
    for purchase in purchase_log or []:
        item_id = get_item_id(purchase.get("key") or "")
        if item_id is None or item_id in timings:
            continue
        timings[item_id] = int(purchase.get("time") or 0)
    return timings


# ---------------------------------------------------------------------------
# Match list ingestion
# ---------------------------------------------------------------------------

async def refresh_matches(store, steam_id: str, limit: int = 20, client=None) -> int:
    """Сохраняет последние матчи игрока. Возвращает число новых матчей."""
    account_id = opendota_client.steam_id64_to_id32(steam_id)
    raw_matches = await opendota_client.get_recent_matches(account_id, client=client)

    new_count = 0
    for raw in raw_matches[:limit]:
        if not raw.get("match_id"):
            continue
        if store.insert_match(parse_opendota_match(raw)):
            new_count += 1

    logger.info(
        "[ingestion] refresh: %d fetched, %d new", min(len(raw_matches), limit), new_count,
    )
    return new_count


async def backfill_matches(store, steam_id: str, before: int, limit: int, client=None) -> int:
    """Stores up to `limit` matches that started before `before` (epoch s).

    Pages through the player's history (newest first), at most 12 pages.
    Returns the number of new matches.
    """
    account_id = opendota_client.steam_id64_to_id32(steam_id)

    collected: list[Match] = []
    for page in range(BACKFILL_MAX_PAGES):
        raw_matches = await opendota_client.get_player_matches(
            account_id, limit=BACKFILL_PAGE_SIZE, offset=page * BACKFILL_PAGE_SIZE, client=client,
        )
        if not raw_matches:
            break
        for raw in raw_matches:
            if raw.get("match_id") and (raw.get("start_time") or 0) < before:
                collected.append(parse_opendota_match(raw))
        if len(collected) >= limit or len(raw_matches) < BACKFILL_PAGE_SIZE:
            break

    collected.sort(key=lambda m: m.start_time, reverse=True)
    new_count = sum(1 for match in collected[:limit] if store.insert_match(match))
    logger.info("[ingestion] backfill before %d: %d new match(es)", before, new_count)
    return new_count


# ---------------------------------------------------------------------------
# Parsing (per-minute enrichment)
# ---------------------------------------------------------------------------

def _store_details(store, match_id: int, details: dict, account_id: int) -> None:
    players = details.get("players") or []
    me = next((p for p in players if p.get("account_id") == account_id), None)
    if me is None:
        raise OpenDotaError(f"Player {account_id} not found in match {match_id}")

    lh_t, dn_t = me.get("lh_t"), me.get("dn_t")
    if lh_t and dn_t:
        store.replace_cs_series(match_id, lh_t, dn_t)

    for player in players:
        if player.get("gold_t"):
            store.replace_player_networth(match_id, player["player_slot"], player["gold_t"])

    role, partner_slot = detect_lane_role(players, me.get("player_slot"))
    store.set_role(match_id, role)
    store.set_partner_slot(match_id, partner_slot)

    for item_id, timing in first_item_purchases(me.get("purchase_log")).items():
        store.add_item_timing(match_id, item_id, timing)


async def parse_match(
    store,
    match_id: int,
    steam_id: str,
    wait_seconds: Optional[float] = None,
    client=None,
) -> None:
    account_id = opendota_client.steam_id64_to_id32(steam_id)
    store.set_parse_state(match_id, ParseState.PARSING)
    try:
        await opendota_client.request_match_parse(match_id, client=client)
        await asyncio.sleep(PARSE_WAIT_SECONDS if wait_seconds is None else wait_seconds)
        details = await opendota_client.get_match_details(match_id, client=client)
        _store_details(store, match_id, details, account_id)
    except Exception:
        logger.warning("[ingestion] match %s: parse failed", match_id)
        store.set_parse_state(match_id, ParseState.FAILED)
        raise

    store.set_parse_state(match_id, ParseState.PARSED)
    logger.info("[ingestion] match %s parsed", match_id)


async def parse_pending(store, steam_id: str, limit: int = 5, wait_seconds: Optional[float] = None,
                        rate_limiter=None, client=None) -> int:
    """Разбирает до `limit` матчей в статусе unparsed/failed. Возвращает число успешных."""
    parsed = 0
    for match in store.get_unparsed_matches()[:limit]:
        if rate_limiter is not None:
            await rate_limiter.acquire()
        try:
            await parse_match(store, match.match_id, steam_id, wait_seconds=wait_seconds, client=client)
            parsed += 1
        except OpenDotaError as exc:
            logger.warning("[ingestion] match %s: %s", match.match_id, exc)
    return parsed
