"""
Configuration Module

Loads environment variables and provides configuration constants for the
signup automation service.

==============================================================================
FEATURES CONFIGURED IN THIS MODULE:
==============================================================================

1. BACKEND SELECTION (Feature: constrained-engine)
   - VERCEL=1 selects the constrained, headless-only engine
   - Anything else selects the local engine

2. RETRYING NAVIGATION (Feature: challenge-retry)
   - RETRY_MAX_ATTEMPTS probes, RETRY_BACKOFF_MS between them
   - PROBE_SELECTOR decides whether the signup form is present

3. RUN BUDGETS (Feature: run-budget)
   - MAX_TURNS caps the number of tool calls a driver may issue
   - RUN_TIMEOUT_SECONDS caps wall-clock time for the whole run

==============================================================================
"""

import os

from dotenv import load_dotenv

# Load .env file
load_dotenv()


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


# Backend discriminator: Vercel sets VERCEL=1 on its serverless hosts
CONSTRAINED_RUNTIME = os.getenv("VERCEL", "") == "1"

# Target
SIGNUP_URL = os.getenv("SIGNUP_URL", "https://ui.chaicode.com/auth/signup")

# Browser
HEADLESS = _flag("HEADLESS", "true")  # local engine only; constrained is always headless
VIEWPORT_WIDTH = int(os.getenv("VIEWPORT_WIDTH", "1280"))
VIEWPORT_HEIGHT = int(os.getenv("VIEWPORT_HEIGHT", "720"))
LAUNCH_TIMEOUT_MS = int(os.getenv("LAUNCH_TIMEOUT_MS", "60000"))
CHROMIUM_EXECUTABLE_PATH = os.getenv("CHROMIUM_EXECUTABLE_PATH") or None

# Timeouts (milliseconds)
NAVIGATION_TIMEOUT_MS = int(os.getenv("NAVIGATION_TIMEOUT_MS", "45000"))
ACTION_TIMEOUT_MS = int(os.getenv("ACTION_TIMEOUT_MS", "10000"))
TYPE_DELAY_MS = int(os.getenv("TYPE_DELAY_MS", "100"))

# ==============================================================================
# RETRYING NAVIGATION (Feature: challenge-retry)
# ==============================================================================
# Bot challenges and slow renders hide the form for a while. The navigator
# probes for PROBE_SELECTOR, sleeping and reloading between failed probes.
#
# With defaults (3 attempts, 5s backoff, 10s probe): ~45s worst case after load
# ==============================================================================
PROBE_SELECTOR = os.getenv("PROBE_SELECTOR", "#firstName")
PROBE_TIMEOUT_MS = int(os.getenv("PROBE_TIMEOUT_MS", "10000"))
RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
RETRY_BACKOFF_MS = int(os.getenv("RETRY_BACKOFF_MS", "5000"))

# Screenshots: "file" writes PNGs under SCREENSHOT_DIR, "inline" returns data URIs.
# Serverless hosts have no writable persistent storage, so inline is their default.
SCREENSHOT_DIR = os.getenv("SCREENSHOT_DIR", os.path.join(os.getcwd(), "public", "screenshots"))
SCREENSHOT_URL_PREFIX = os.getenv("SCREENSHOT_URL_PREFIX", "/screenshots")
SCREENSHOT_MODE = os.getenv("SCREENSHOT_MODE", "inline" if CONSTRAINED_RUNTIME else "file").lower()

# ==============================================================================
# RUN BUDGETS (Feature: run-budget)
# ==============================================================================
MAX_TURNS = int(os.getenv("MAX_TURNS", "20"))
RUN_TIMEOUT_SECONDS = float(os.getenv("RUN_TIMEOUT_SECONDS", "120"))

# ==============================================================================
# AGENT DRIVER
# ==============================================================================
# DRIVER_MODE controls who sequences the tool calls:
#   "scripted": fixed signup plan, no LLM needed (default)
#   "openai":   any OpenAI-compatible chat endpoint with tool calling
#
# Key resolution order: AGENT_LLM_API_KEY → LLM_API_KEY → OPENAI_API_KEY → "ollama"
# ==============================================================================
DRIVER_MODE = os.getenv("DRIVER_MODE", "scripted").lower().strip()
AGENT_LLM_BASE_URL = os.getenv("AGENT_LLM_BASE_URL", "http://localhost:11434/v1")
AGENT_LLM_API_KEY = (
    os.getenv("AGENT_LLM_API_KEY")
    or os.getenv("LLM_API_KEY")
    or os.getenv("OPENAI_API_KEY")
    or "ollama"
)
AGENT_LLM_MODEL = os.getenv("AGENT_LLM_MODEL", "qwen3-coder:latest")

# API
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
