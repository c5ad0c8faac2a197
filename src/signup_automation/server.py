"""
Signup Automation Server

Exposes one signup automation run per HTTP request.

Start with:
  python -m signup_automation.server

Environment variables (all optional, have sensible defaults):
  ── Backend ───────────────────────────────────────────────────────────────
  VERCEL               "1" selects the constrained headless engine
  HEADLESS             Local engine headless   (default: true)
  CHROMIUM_EXECUTABLE_PATH  Browser binary for the constrained engine
  ── Run ───────────────────────────────────────────────────────────────────
  SIGNUP_URL           Target signup page
  DRIVER_MODE          "scripted" (default) or "openai"
  MAX_TURNS            Tool calls per run       (default: 20)
  RUN_TIMEOUT_SECONDS  Wall clock per run       (default: 120)
  ── Screenshots ───────────────────────────────────────────────────────────
  SCREENSHOT_MODE      "file" or "inline"       (default: inline on VERCEL)
  SCREENSHOT_DIR       Output directory         (default: ./public/screenshots)
  SCREENSHOT_URL_PREFIX  URL path they are served under (default: /screenshots)
  ── Server ────────────────────────────────────────────────────────────────
  API_HOST / API_PORT  Bind address             (default: 0.0.0.0:8000)
  CORS_ORIGINS         Comma-separated origins
  LOG_LEVEL            Root log level           (default: INFO)
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import config
from .drivers import driver_factory
from .engines import select_engine
from .runner import run_automation
from .screenshots import FILE

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Signup Automation",
    description="Agent-driven browser automation of a signup form",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

if config.SCREENSHOT_MODE == FILE:
    app.mount(
        config.SCREENSHOT_URL_PREFIX,
        StaticFiles(directory=config.SCREENSHOT_DIR, check_dir=False),
        name="screenshots",
    )


# ── Endpoints ─────────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    return {
        "status": "ok",
        "engine": select_engine().kind.value,
        "driver_mode": config.DRIVER_MODE,
        "screenshot_mode": config.SCREENSHOT_MODE,
        "signup_url": config.SIGNUP_URL,
    }


@app.get("/api/automate")
async def automate():
    """Run one signup automation. 200 with the result on success, 500 with the same shape on failure."""
    try:
        factory = driver_factory(config.DRIVER_MODE)
    except ValueError as e:
        logger.error(str(e))
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    result = await run_automation(factory)
    if result.success:
        logger.info(f"Run {result.run_id} succeeded in {result.duration_ms}ms")
    else:
        logger.warning(f"Run {result.run_id} failed: {result.error}")
    return JSONResponse(status_code=200 if result.success else 500, content=result.to_response())


# ── Main ──────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    logger.info("=" * 60)
    logger.info("  Signup Automation")
    logger.info("=" * 60)
    logger.info(f"  Engine:        {select_engine().kind.value}")
    logger.info(f"  Driver:        {config.DRIVER_MODE}")
    logger.info(f"  Target:        {config.SIGNUP_URL}")
    logger.info(f"  Screenshots:   {config.SCREENSHOT_MODE}")
    logger.info(f"  Max turns:     {config.MAX_TURNS}")
    logger.info(f"  Run timeout:   {config.RUN_TIMEOUT_SECONDS:g}s")
    logger.info(f"  Port:          {config.API_PORT}")
    logger.info("=" * 60)

    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
