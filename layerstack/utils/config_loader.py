import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv
from pydantic import ValidationError

from layerstack.models.generation import GenerationConfig

SOURCE_ENV_RE = re.compile(r"^DIR\d+$")
_TRUE_VALUES = {"1", "true", "yes", "on"}


def _natural_key(name: str) -> list:
    return [int(part) if part.isdigit() else part for part in re.split(r"(\d+)", name)]


def source_dirs_from_env(environ: Optional[Mapping[str, str]] = None) -> list[str]:
    """Every ``DIR<n>`` variable is a layer source, bottom first.

    Order is the natural sort of the variable names (DIR2 before DIR10).
    """
    environ = os.environ if environ is None else environ
    names = sorted((name for name in environ if SOURCE_ENV_RE.match(name)), key=_natural_key)
    return [environ[name] for name in names if environ[name]]


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def load_generation_config(
    env_file: Optional[str | Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> GenerationConfig:
    if env_file is not None and not Path(env_file).is_file():
        raise FileNotFoundError(f"Env file not found: {env_file}")
    # Only the working directory's .env is picked up implicitly, never a parent's.
    dotenv_path = Path(env_file) if env_file is not None else Path.cwd() / ".env"
    if dotenv_path.is_file() and load_dotenv(dotenv_path):
        logging.info("📄 Loaded environment from %s", dotenv_path)

    values: dict[str, Any] = {
        "sources": source_dirs_from_env(),
        "count": _env_int("NFT_COUNT"),
        "output_dir": os.getenv("OUTPUT_DIR"),
        "workers": _env_int("SAVE_WORKERS"),
        "max_pending": _env_int("SAVE_MAX_PENDING"),
        "vips_threads": _env_int("VIPS_THREADS"),
        "storage_backend": os.getenv("STORAGE_BACKEND"),
        "continue_on_error": (
            os.getenv("CONTINUE_ON_ERROR").strip().lower() in _TRUE_VALUES
            if os.getenv("CONTINUE_ON_ERROR")
            else None
        ),
    }
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    if values["count"] is None:
        raise ValueError("NFT_COUNT environment variable not set")
    if not values["output_dir"]:
        raise ValueError("OUTPUT_DIR environment variable not set")

    try:
        return GenerationConfig(**{k: v for k, v in values.items() if v is not None})
    except ValidationError as exc:
        raise ValueError(f"Invalid generation config: {exc}") from exc
