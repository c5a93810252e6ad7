import os
from typing import Optional

DEFAULT_POKEAPI_BASE_URL = "https://pokeapi.co/api/v2"
DEFAULT_LIST_LIMIT = 10000
DEFAULT_BATCH_SIZE = 50
DEFAULT_TIMEOUT = 10.0
DEFAULT_IMPORT_CHUNK_SIZE = 500

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


_env_loaded = False


def _load_env_from_file(path: Optional[str] = None) -> None:
    """Copy KEY=VALUE pairs from the project .env into os.environ, once.

    Variables already set in the process environment win.
    """
    global _env_loaded
    if _env_loaded and path is None:
        return
    _env_loaded = True
    env_path = path or os.path.join(PROJECT_ROOT, ".env")
    try:
        with open(env_path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except OSError:
        # .env is optional
        return
    for line in lines:
        key, sep, val = line.strip().partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        if not os.environ.get(key):
            os.environ[key] = val.strip().strip('"').strip("'")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def get_pokeapi_base_url() -> str:
    _load_env_from_file()
    return (os.getenv("POKEAPI_BASE_URL") or DEFAULT_POKEAPI_BASE_URL).rstrip("/")


def get_list_limit() -> int:
    _load_env_from_file()
    return _env_int("POKEAPI_LIST_LIMIT", DEFAULT_LIST_LIMIT)


def get_batch_size() -> int:
    _load_env_from_file()
    return _env_int("POKEAPI_BATCH_SIZE", DEFAULT_BATCH_SIZE)


def get_timeout() -> float:
    _load_env_from_file()
    return _env_float("POKEAPI_TIMEOUT", DEFAULT_TIMEOUT)


def get_import_chunk_size() -> int:
    _load_env_from_file()
    return _env_int("CSV_IMPORT_CHUNK_SIZE", DEFAULT_IMPORT_CHUNK_SIZE)


def get_log_level() -> str:
    _load_env_from_file()
    return (os.getenv("LOG_LEVEL") or "INFO").upper()
