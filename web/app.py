from fastapi import FastAPI, HTTPException, Request
import asyncio
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from cs2_stats.config import load_settings
from cs2_stats.models import RANKABLE_FIELDS, is_valid_steam_id
from cs2_stats.orchestrator import ScraperManager

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="CS2 Stats Scraper")

# Built on first use so importing the module does not touch the database.
manager: ScraperManager | None = None
scrape_task: asyncio.Task | None = None
last_summary: dict | None = None
last_error: str | None = None


def get_manager() -> ScraperManager:
    global manager
    if manager is None:
        settings = load_settings()
        manager = ScraperManager.from_settings(settings)
        LOGGER.info("Using database at: %s", manager.db.db_path)
    return manager


async def _run_scraper(active: ScraperManager) -> None:
    global last_summary, last_error
    try:
        last_summary = await active.start_scraping()
        last_error = None
    except Exception as e:
        last_error = str(e)
        LOGGER.error("Background scrape failed: %s", e)


@app.post("/api/scrape/start")
async def scrape_start() -> dict:
    global scrape_task
    active = get_manager()
    if active.is_active:
        raise HTTPException(status_code=409, detail="Scraper is already running")
    scrape_task = asyncio.create_task(_run_scraper(active))
    # Let the task claim the run before replying.
    await asyncio.sleep(0)
    return {"ok": True, "running": True}


@app.post("/api/scrape/stop")
async def scrape_stop() -> dict:
    active = get_manager()
    if not active.stop_scraping():
        raise HTTPException(status_code=409, detail="Scraper is not currently running")
    return {"ok": True, "stopping": True}


@app.get("/api/scrape/status")
async def scrape_status() -> dict:
    active = get_manager()
    return {
        "running": active.is_active,
        "stopping": active.is_active and not active.is_running,
        "processed": active.processed_count,
        "succeeded": active.success_count,
        "failed": active.failure_count,
        "last_summary": last_summary,
        "last_error": last_error,
    }


@app.get("/api/stats")
async def stats() -> dict:
    try:
        return get_manager().get_stats()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load stats: {str(e)}")


@app.post("/api/reset")
async def reset_failed() -> dict:
    try:
        count = get_manager().reset_failed_ids()
        return {"ok": True, "reset": count}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to reset failed Steam IDs: {str(e)}")


@app.get("/api/logs")
async def logs(limit: int = 20, steam_id64: str | None = None) -> dict:
    if limit < 1:
        raise HTTPException(status_code=400, detail="limit must be at least 1")
    try:
        return {"logs": get_manager().get_logs(limit=limit, steam_id64=steam_id64)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load scrape logs: {str(e)}")


@app.post("/api/identifiers")
async def add_identifiers(request: Request) -> dict:
    try:
        payload = await request.json()
    except Exception:
        payload = {}
    raw_ids = (payload or {}).get("steam_ids") or []
    if isinstance(raw_ids, str):
        raw_ids = [part for part in raw_ids.replace(",", " ").split() if part]
    try:
        priority = int((payload or {}).get("priority", 1))
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail="priority must be an integer")

    steam_ids = [str(value).strip() for value in raw_ids]
    if not steam_ids:
        raise HTTPException(status_code=400, detail="steam_ids is required")
    invalid = [value for value in steam_ids if not is_valid_steam_id(value)]
    if invalid:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid Steam ID(s), expected 17 digits: {', '.join(invalid)}",
        )

    try:
        count = get_manager().add_identifiers([(value, priority) for value in steam_ids])
        return {"ok": True, "queued": count}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to queue Steam IDs: {str(e)}")


@app.get("/api/players/top")
async def top_players(limit: int = 10, order_by: str = "kd_ratio") -> dict:
    if order_by not in RANKABLE_FIELDS:
        raise HTTPException(
            status_code=400,
            detail=f"order_by must be one of: {', '.join(RANKABLE_FIELDS)}",
        )
    try:
        players = get_manager().get_top_players(limit=limit, order_by=order_by)
        return {"order_by": order_by, "players": players}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load top players: {str(e)}")


@app.get("/api/players/{steam_id64}")
async def player_stats(steam_id64: str) -> dict:
    try:
        row = get_manager().db.get_player_stats(steam_id64)
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load player stats: {str(e)}")
    if not row:
        raise HTTPException(status_code=404, detail=f"No stats stored for '{steam_id64}'")
    return row


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(app, host="127.0.0.1", port=5000)
