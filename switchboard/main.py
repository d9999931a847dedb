import asyncio
import os

from fastapi import Depends, FastAPI

from switchboard.config import settings
from switchboard.core import Core, get_core
from switchboard.logging_config import get_logger, setup_logging
from switchboard.routers import chat

setup_logging(settings.log_level)

app = FastAPI(
    title="Switchboard",
    description="Conversation routing core for the live-chat platform",
    version="0.1.0",
)

app.include_router(chat.router)

sweeper_logger = get_logger("session_sweeper")
_sweeper_task: asyncio.Task | None = None


def _is_sweeper_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.sweeper_enabled


async def _sweeper_loop() -> None:
    interval_seconds = max(settings.sweep_interval_seconds, 1.0)
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await get_core().sessions.sweep(settings.session_idle_hours)
            if removed:
                sweeper_logger.info("Idle sessions swept", extra={"context": {"removed": len(removed)}})
        except asyncio.CancelledError:
            break
        except Exception as exc:
            sweeper_logger.error(
                "Session sweeper loop failed",
                extra={"context": {"error": str(exc)}},
            )


@app.on_event("startup")
async def start_sweeper() -> None:
    global _sweeper_task
    if not _is_sweeper_enabled():
        return
    if _sweeper_task is None or _sweeper_task.done():
        _sweeper_task = asyncio.create_task(_sweeper_loop())
        sweeper_logger.info("Session sweeper started")


@app.on_event("shutdown")
async def stop_sweeper() -> None:
    global _sweeper_task
    if _sweeper_task is None:
        return
    _sweeper_task.cancel()
    try:
        await _sweeper_task
    except asyncio.CancelledError:
        pass
    _sweeper_task = None


@app.get("/health")
async def health(core: Core = Depends(get_core)):
    return {
        "status": "ok",
        "ai_ready": core.gateway.is_ready(),
        "flow_enabled": core.flow_engine.enabled,
        "conversations": len(core.store.keys()),
    }
