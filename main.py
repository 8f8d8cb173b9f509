"""
Unified backend entry point.

Architecture:
- One Python process, one asyncio event loop
- FastAPI serves the student lessons view state over HTTP
- Each student's viewer polls the lesson service in background tasks
  running on the same loop

We use FastAPI's lifespan to manage startup/shutdown so viewers stop
polling when the server goes down.

Run with: python main.py [--port PORT]
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path

project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

# Load .env.local first (if exists), then .env as fallback
# .env.local is gitignored and used for local dev overrides
load_dotenv(project_root / ".env.local")  # Local overrides (gitignored)
load_dotenv()  # Fallback to .env

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from student_lessons.config import check_required_env_vars, get_api_port, is_dev_mode
from web_api.routes.students import router as students_router
from web_api.viewers import close_registry

logger = logging.getLogger(__name__)

if os.getenv("SENTRY_DSN"):
    sentry_sdk.init(
        dsn=os.environ["SENTRY_DSN"],
        environment="development" if is_dev_mode() else "production",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan context manager.

    Viewers are created lazily per student; shutdown cancels their
    read-channel tasks.
    """
    ok, warnings = check_required_env_vars()
    for warning in warnings:
        print(warning)
    if not ok:
        raise RuntimeError("Missing required environment variables")

    yield

    print("Shutting down lesson viewers...")
    await close_registry()


app = FastAPI(
    title="Student Lessons Viewer API",
    lifespan=lifespan,
)

# CORS configuration
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        FRONTEND_URL,
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(students_router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    from web_api.viewers import _registry

    return {
        "status": "healthy",
        "active_viewers": len(_registry) if _registry else 0,
    }


if __name__ == "__main__":
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="Student Lessons Viewer Server")
    parser.add_argument(
        "--port",
        type=int,
        default=get_api_port(),
        help="Port to run the server on (default: API_PORT or 8000)",
    )
    parser.add_argument(
        "--log-level",
        default="debug" if is_dev_mode() else "info",
        help="Logging level for the student_lessons package",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Pass app object directly (not string) to avoid module reimport issues
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=args.port,
    )
