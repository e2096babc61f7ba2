"""
opendota_client.py — Async OpenDota API calls used by match ingestion.

Любой вызов поднимает OpenDotaError при сетевых ошибках и ответах не 200.
Можно передать свой httpx.AsyncClient (переиспользование соединений, тесты);
иначе на каждый вызов открывается временный клиент.
"""

import logging
import os
from typing import Optional

import httpx

from keeper.config import BACKFILL_LOBBY_TYPES
from keeper.errors import OpenDotaError

logger = logging.getLogger(__name__)

OPENDOTA_API_KEY = os.getenv("OPENDOTA_API_KEY")
_BASE_URL = "https://api.opendota.com/api"

STEAM_ID64_BASE = 76561197960265728


def _build_params() -> dict:
    """Добавляет api_key в query-параметры, если ключ задан."""
    if OPENDOTA_API_KEY:
        return {"api_key": OPENDOTA_API_KEY}
    return {}


def steam_id64_to_id32(steam_id: str) -> int:
    """Steam ID64 -> account id OpenDota. Значения меньше базы возвращаются как есть."""
    try:
        id64 = int(str(steam_id).strip())
    except ValueError as e:
        raise OpenDotaError(f"Invalid Steam ID: {steam_id!r}") from e
    if id64 < 0:
        raise OpenDotaError(f"Invalid Steam ID: {steam_id!r}")
    if id64 < STEAM_ID64_BASE:
        return id64
    return id64 - STEAM_ID64_BASE


async def _send(
    method: str,
    path: str,
    what: str,
    params: Optional[dict] = None,
    timeout: float = 15.0,
    client: Optional[httpx.AsyncClient] = None,
) -> httpx.Response:
    url = f"{_BASE_URL}{path}"
    query = _build_params()
    if params:
        query.update(params)

    try:
        if client is not None:
            r = await client.request(method, url, params=query, timeout=timeout)
        else:
            async with httpx.AsyncClient() as own_client:
                r = await own_client.request(method, url, params=query, timeout=timeout)
    except httpx.RequestError as e:
        logger.error("OpenDota network error (%s): %s", what, e)
        raise OpenDotaError(f"OpenDota network error: {e}") from e

    if r.status_code != 200:
        logger.error("OpenDota %s returned HTTP %s: %s", what, r.status_code, r.text[:200])
        raise OpenDotaError(f"OpenDota API returned HTTP {r.status_code}")

    return r


async def get_recent_matches(account_id: int, client: Optional[httpx.AsyncClient] = None) -> list[dict]:
    """GET /api/players/{account_id}/recentMatches — последние ~20 матчей игрока.

    Каждый элемент содержит итоговые поля матча:
      match_id, player_slot, radiant_win, duration, game_mode, lobby_type,
      hero_id, start_time, kills, deaths, assists, xp_per_min, gold_per_min,
      last_hits, denies, hero_damage, tower_damage, hero_healing.
    """
    r = await _send(
        "GET", f"/players/{account_id}/recentMatches",
        f"get_recent_matches account_id={account_id}", client=client,
    )
    return r.json()


async def get_player_matches(
    account_id: int,
    limit: int = 100,
    offset: int = 0,
    lobby_type: str = BACKFILL_LOBBY_TYPES,
    client: Optional[httpx.AsyncClient] = None,
) -> list[dict]:
    """GET /api/players/{account_id}/matches — вся история, от новых к старым.

    Поля те же, что у recentMatches. Постранично через limit/offset;
    `lobby_type` — фильтр через запятую (0 = public, 7 = ranked).
    """
    params = {"limit": limit, "offset": offset, "lobby_type": lobby_type}
    r = await _send(
        "GET", f"/players/{account_id}/matches",
        f"get_player_matches account_id={account_id} offset={offset}",
        params=params, timeout=30.0, client=client,
    )
    return r.json()


async def request_match_parse(match_id: int, client: Optional[httpx.AsyncClient] = None) -> dict:
    """POST /api/request/{match_id} — ставит разбор реплея в очередь OpenDota."""
    r = await _send(
        "POST", f"/request/{match_id}",
        f"request_match_parse match_id={match_id}", client=client,
    )
    return r.json()


async def get_match_details(match_id: int, client: Optional[httpx.AsyncClient] = None) -> dict:
    """GET /api/matches/{match_id} — полные детали матча.

    Поля, которые использует ingestion (в каждом элементе players[]):
      player_slot, account_id, hero_id, lane_role (1 safe, 2 mid, 3 off,
      4 jungle), gold_t / lh_t / dn_t (one value per minute, index = minute),
      purchase_log [{time, key}].
    Поминутные массивы есть только после разбора реплея.
    """
    r = await _send(
        "GET", f"/matches/{match_id}",
        f"get_match_details match_id={match_id}", timeout=30.0, client=client,
    )
    return r.json()
