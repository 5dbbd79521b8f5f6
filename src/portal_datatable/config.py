from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable

from dotenv import load_dotenv

from .exceptions import ConfigError

ENV_PREFIX = "DATATABLE_"
ENGINE_MODES = {"client", "server"}


@dataclass(frozen=True)
class EngineConfig:
    default_page_size: int = 10
    page_size_options: tuple[int, ...] = (10, 25, 50, 100)
    max_page_size: int = 500
    search_debounce_ms: int = 350
    mobile_breakpoint: int = 768
    max_filter_depth: int = 3
    multi_sort: bool = False
    mode: str = "client"

    @property
    def server_side(self) -> bool:
        return self.mode == "server"


@dataclass(frozen=True)
class HttpConfig:
    api_base_url: str
    connect_timeout_seconds: float = 5.0
    read_timeout_seconds: float = 15.0
    retries: int = 2
    retry_backoff_seconds: float = 0.3
    verify_ssl: bool = True


def _env(name: str) -> str:
    return f"{ENV_PREFIX}{name}"


def _require(values: dict[str, str | None], required: Iterable[str]) -> None:
    missing = [key for key in required if not values.get(key)]
    if missing:
        raise ConfigError(f"Missing required config values: {', '.join(missing)}")


def _coerce_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected a number, got {raw!r}") from exc


def _read_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected an integer, got {raw!r}") from exc


def _read_int_list(name: str, default: str) -> tuple[int, ...]:
    raw = os.getenv(name, default)
    try:
        values = tuple(int(part) for part in raw.split(",") if part.strip())
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid {name}: expected comma separated integers, got {raw!r}") from exc
    if not values:
        raise ConfigError(f"Invalid {name}: at least one value is required")
    return values


def _validate(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigError(message)


def load_config(env_file: str | None = None) -> EngineConfig:
    """Load engine settings from the environment with optional .env override."""
    load_dotenv(env_file)

    default_page_size = _read_int(_env("DEFAULT_PAGE_SIZE"), "10")
    _validate(
        default_page_size >= 1,
        f"Invalid {_env('DEFAULT_PAGE_SIZE')}: expected >= 1, got {default_page_size}",
    )

    max_page_size = _read_int(_env("MAX_PAGE_SIZE"), "500")
    _validate(
        max_page_size >= default_page_size,
        f"Invalid {_env('MAX_PAGE_SIZE')}: expected >= {default_page_size}, got {max_page_size}",
    )

    page_size_options = _read_int_list(_env("PAGE_SIZE_OPTIONS"), "10,25,50,100")
    _validate(
        all(1 <= option <= max_page_size for option in page_size_options),
        f"Invalid {_env('PAGE_SIZE_OPTIONS')}: every option must be between 1 and {max_page_size}",
    )

    search_debounce_ms = _read_int(_env("SEARCH_DEBOUNCE_MS"), "350")
    _validate(
        search_debounce_ms >= 0,
        f"Invalid {_env('SEARCH_DEBOUNCE_MS')}: expected >= 0, got {search_debounce_ms}",
    )

    mobile_breakpoint = _read_int(_env("MOBILE_BREAKPOINT"), "768")
    _validate(
        mobile_breakpoint > 0,
        f"Invalid {_env('MOBILE_BREAKPOINT')}: expected > 0, got {mobile_breakpoint}",
    )

    max_filter_depth = _read_int(_env("MAX_FILTER_DEPTH"), "3")
    _validate(
        max_filter_depth >= 1,
        f"Invalid {_env('MAX_FILTER_DEPTH')}: expected >= 1, got {max_filter_depth}",
    )

    mode = (os.getenv(_env("MODE")) or "client").strip().lower()
    _validate(mode in ENGINE_MODES, f"Invalid {_env('MODE')}: expected client or server, got {mode!r}")

    return EngineConfig(
        default_page_size=default_page_size,
        page_size_options=page_size_options,
        max_page_size=max_page_size,
        search_debounce_ms=search_debounce_ms,
        mobile_breakpoint=mobile_breakpoint,
        max_filter_depth=max_filter_depth,
        multi_sort=_coerce_bool(os.getenv(_env("MULTI_SORT")), False),
        mode=mode,
    )


def load_http_config(env_file: str | None = None) -> HttpConfig:
    """Settings for the remote record source; the base URL has no fallback."""
    load_dotenv(env_file)

    api_base_url = (os.getenv(_env("API_BASE_URL")) or "").strip()
    _require({_env("API_BASE_URL"): api_base_url}, [_env("API_BASE_URL")])

    timeout_seconds = _read_float(_env("TIMEOUT_SECONDS"), "10")
    _validate(
        timeout_seconds > 0,
        f"Invalid {_env('TIMEOUT_SECONDS')}: expected > 0, got {timeout_seconds}",
    )

    retries = _read_int(_env("RETRIES"), "2")
    _validate(retries >= 0, f"Invalid {_env('RETRIES')}: expected >= 0, got {retries}")

    retry_backoff_seconds = _read_float(_env("RETRY_BACKOFF_SECONDS"), "0.3")
    _validate(
        retry_backoff_seconds >= 0,
        f"Invalid {_env('RETRY_BACKOFF_SECONDS')}: expected >= 0, got {retry_backoff_seconds}",
    )

    return HttpConfig(
        api_base_url=api_base_url.rstrip("/"),
        connect_timeout_seconds=min(timeout_seconds, 5.0),
        read_timeout_seconds=timeout_seconds,
        retries=retries,
        retry_backoff_seconds=retry_backoff_seconds,
        verify_ssl=_coerce_bool(os.getenv(_env("VERIFY_SSL")), True),
    )
