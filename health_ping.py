# health_ping.py
import asyncio
import random
from typing import Callable, Optional

import httpx

from utils import log


async def ping_once(client: httpx.AsyncClient, url: str) -> Optional[int]:
    """GETs the liveness URL once. Returns the status code, or None on failure."""
    try:
        response = await client.get(url)
    except httpx.HTTPError as e:
        log.error(f"[HealthPing] {url} failed: {type(e).__name__} - {e}")
        return None
    log.info(f"[HealthPing] {url} responded with {response.status_code}")
    return response.status_code


async def run_health_ping(
    url: str,
    max_delay_seconds: float,
    client: Optional[httpx.AsyncClient] = None,
    next_delay: Callable[[float], float] = lambda upper: random.uniform(0, upper),
) -> None:
    """
    Pings `url` forever, sleeping a random delay below `max_delay_seconds`
    between attempts. Runs until cancelled.
    """
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=30.0)
    try:
        while True:
            await ping_once(http, url)
            delay = next_delay(max_delay_seconds)
            log.info(f"[HealthPing] Next check in {delay / 60:.2f} min")
            await asyncio.sleep(delay)
    finally:
        if owns_client:
            await http.aclose()


def start_health_ping(url: Optional[str], max_delay_seconds: float) -> Optional["asyncio.Task[None]"]:
    """Starts the detached ping loop, or does nothing when no URL is configured."""
    if not url:
        log.info("[HealthPing] HEALTH_PING_URL not set, liveness ping disabled")
        return None
    log.info(f"[HealthPing] Starting liveness ping to {url}")
    return asyncio.create_task(run_health_ping(url, max_delay_seconds), name="health-ping")
