"""
Centralized configuration for the student lessons viewer.

Values come from the environment; main.py loads .env / .env.local first.
"""

import os

DEFAULT_LESSONS_API_URL = "http://localhost:8080/api"


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def is_production() -> bool:
    """Check if running on Railway (production environment)."""
    return bool(os.environ.get("RAILWAY_ENVIRONMENT"))


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_lessons_api_url() -> str:
    """Base URL of the remote lesson service."""
    return os.getenv("LESSONS_API_URL", DEFAULT_LESSONS_API_URL).rstrip("/")


def get_request_timeout() -> float:
    """Seconds to wait for the lesson service."""
    return float(os.getenv("LESSONS_API_TIMEOUT", "30"))


def get_poll_interval() -> float:
    """Seconds between read-channel polls."""
    return float(os.getenv("LESSONS_POLL_INTERVAL", "30"))


def get_viewer_idle_timeout() -> float:
    """Seconds a student's viewer may go untouched before it is evicted."""
    return float(os.getenv("LESSONS_VIEWER_IDLE_TIMEOUT", "900"))


def get_max_viewers() -> int:
    """Upper bound on viewers held by one web process."""
    return int(os.getenv("LESSONS_MAX_VIEWERS", "1000"))


# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("LESSONS_API_URL", "Base URL of the lesson service", False),
    ("SENTRY_DSN", "Sentry DSN for error reporting", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        value = os.environ.get(name)

        if not value:
            if is_production():
                errors.append(f"  ✗ {name}: Not set ({description})")
            elif required_in_dev or not in_dev:
                warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        for error in errors:
            print(error)
        return False, warnings

    return True, warnings
