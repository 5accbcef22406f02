"""Runtime configuration for the AutoRovers compare server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from compare_mcp.compare.models import NormalizationPolicy

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

_DEFAULT_STATE_DB_PATH = os.path.join(os.path.dirname(__file__), "compare_state.db")
_DEFAULT_FETCH_TIMEOUT_SECONDS = 12.0


def load_env_file(path: Path = _ENV_FILE) -> None:
    """Load ``KEY=value`` lines into ``os.environ`` without overriding set values."""
    if not path.is_file():
        return
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#") and "=" in line:
            k, _, v = line.partition("=")
            os.environ.setdefault(k.strip(), v.strip())


@dataclass(frozen=True)
class CompareConfig:
    """Settings resolved once at server start-up."""

    api_base_url: str = ""
    api_token: str = ""
    state_db_path: str = _DEFAULT_STATE_DB_PATH
    normalization_policy: NormalizationPolicy = NormalizationPolicy.STRICT
    fetch_timeout_seconds: float = _DEFAULT_FETCH_TIMEOUT_SECONDS


def _parse_timeout(raw: str | None) -> float:
    if not raw:
        return _DEFAULT_FETCH_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        return _DEFAULT_FETCH_TIMEOUT_SECONDS
    return value if value > 0 else _DEFAULT_FETCH_TIMEOUT_SECONDS


def load_config() -> CompareConfig:
    """Build a :class:`CompareConfig` from the environment (and ``.env``)."""
    load_env_file()
    return CompareConfig(
        api_base_url=os.environ.get("AUTOROVERS_API_BASE_URL", "").strip().rstrip("/"),
        api_token=os.environ.get("AUTOROVERS_API_TOKEN", "").strip(),
        state_db_path=os.environ.get("AUTOROVERS_STATE_DB_PATH", _DEFAULT_STATE_DB_PATH),
        normalization_policy=NormalizationPolicy.parse(
            os.environ.get("COMPARE_NORMALIZATION_POLICY")
        ),
        fetch_timeout_seconds=_parse_timeout(
            os.environ.get("AUTOROVERS_FETCH_TIMEOUT_SECONDS")
        ),
    )
