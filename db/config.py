"""
Environment-driven configuration helpers shared by the database layer and
the forecast settings.
"""

from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]


def load_env_files() -> None:
    """
    Load KEY=VALUE pairs from `.env` and `.env.local` at the project root.
    Variables already present in the process environment win.
    """

    for filename in (".env", ".env.local"):
        env_path = PROJECT_ROOT / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            if key and key not in os.environ:
                os.environ[key] = value.strip().strip('"').strip("'")


def normalize_postgres_url(url: str) -> str:
    """
    Rewrite bare postgres URLs to the psycopg driver form.
    Non-postgres URLs (e.g. sqlite) are returned unchanged.
    """

    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def resolve_database_url() -> str:
    """
    Resolve the forecast store URL.

    Priority:
    1) DATABASE_URL
    2) LOCAL_DATABASE_URL
    """

    load_env_files()

    for name in ("DATABASE_URL", "LOCAL_DATABASE_URL"):
        url = os.getenv(name, "").strip()
        if url:
            return normalize_postgres_url(url)

    raise RuntimeError(
        "No database URL configured. Set DATABASE_URL or LOCAL_DATABASE_URL "
        "to persist forecast runs."
    )
