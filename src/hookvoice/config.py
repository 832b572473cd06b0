"""Configuration management for hookvoice.

Loads configuration from ~/.config/hookvoice/config.toml.
Priority chain: CLI flags > env vars > config file.

``${VAR}`` and ``${VAR:-default}`` references in string values are
substituted before validation, so the rest of the package only ever sees
fully resolved, frozen dataclasses.
"""

import os
import re
import sys
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .cache.keys import NormalizationConfig
from .tts.errors import ConfigurationError

CONFIG_DIR = Path.home() / ".config" / "hookvoice"
CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "hookvoice"

PROVIDER_TYPES = ("openai", "elevenlabs", "local")

DEFAULT_CONFIG = """\
# hookvoice configuration

[cache]
enabled = true

# Bounds for the on-disk audio cache
max_size_mb = 100
max_age_days = 30
max_entries = 1000

# cache_dir = "~/.cache/hookvoice"

[cache.normalization]
case_sensitive = false
strip_priority_prefixes = true
normalize_whitespace = true

[default_criteria]
# Try other providers when the requested one fails
allow_fallback = true

# Deadline for a single provider attempt
max_response_time_ms = 10000

# Providers are tried in ascending priority order. The local provider
# (say/espeak/SAPI) is always appended last if not listed here.
[[providers]]
id = "openai"
priority = 10
api_key = "${OPENAI_API_KEY:-}"
voice = "alloy"
model = "tts-1"
max_response_time_ms = 8000

[[providers]]
id = "elevenlabs"
priority = 20
api_key = "${ELEVENLABS_API_KEY:-}"
"""

_ENV_REFERENCE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


@dataclass(frozen=True)
class CacheConfig:
    """Audio cache configuration."""

    enabled: bool = True
    max_size_bytes: int = 100 * 1024 * 1024
    max_age_ms: int | None = 30 * 24 * 60 * 60 * 1000
    max_entries: int = 1000
    cache_dir: Path = DEFAULT_CACHE_DIR
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)


@dataclass(frozen=True)
class ProviderConfig:
    """Configuration for one TTS provider."""

    id: str
    type: str
    priority: int
    enabled: bool = True
    api_key: str | None = None
    voice: str | None = None
    model: str | None = None
    max_response_time_ms: int | None = None
    supported_voices: tuple[str, ...] = ()
    supported_formats: tuple[str, ...] = ()


@dataclass(frozen=True)
class DefaultCriteria:
    """Defaults applied when a request or provider does not override them."""

    allow_fallback: bool = True
    max_response_time_ms: int = 10000


@dataclass(frozen=True)
class HookVoiceConfig:
    """Top-level hookvoice configuration."""

    cache: CacheConfig = field(default_factory=CacheConfig)
    providers: tuple[ProviderConfig, ...] = ()
    default_criteria: DefaultCriteria = field(default_factory=DefaultCriteria)


def generate_config(path: Path = CONFIG_PATH) -> Path:
    """Generate default config file at ~/.config/hookvoice/config.toml."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG)
    return path


def load_config(path: Path | None = None) -> HookVoiceConfig:
    """Load configuration from a TOML file with env var overrides.

    On first run without an explicit path, generates the config file and
    exits so the user can review it before proceeding.

    Args:
        path: Config file to read (defaults to ~/.config/hookvoice/config.toml)

    Returns:
        Loaded and validated HookVoiceConfig.

    Raises:
        SystemExit: If the default config is missing (after generating it).
        ConfigurationError: If the file is unreadable or values are invalid.
    """
    if path is None:
        path = CONFIG_PATH
        if not path.exists():
            generate_config(path)
            print(
                f"No config found. Generated {path}. Review it and run again.",
                file=sys.stderr,
            )
            raise SystemExit(1)

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}", e) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}", e) from e

    return parse_config(data)


def parse_config(
    data: Mapping[str, Any], env: Mapping[str, str] | None = None
) -> HookVoiceConfig:
    """Build a validated config from raw (already decoded) data.

    Args:
        data: Raw config mapping, as decoded from TOML
        env: Environment used for substitution and overrides (defaults to
            os.environ)

    Raises:
        ConfigurationError: If any value is missing or invalid
    """
    env = os.environ if env is None else env
    data = substitute_env(data, env)

    cache = _parse_cache(data.get("cache", {}), env)
    criteria = _parse_criteria(data.get("default_criteria", {}), env)

    providers: list[ProviderConfig] = []
    raw_providers = data.get("providers", [])
    if not isinstance(raw_providers, list):
        raise ConfigurationError("providers must be an array of tables")
    for index, raw in enumerate(raw_providers):
        providers.append(_parse_provider(raw, index))

    ids = [p.id for p in providers]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ConfigurationError(f"Duplicate provider ids: {', '.join(duplicates)}")

    return HookVoiceConfig(
        cache=cache, providers=tuple(providers), default_criteria=criteria
    )


def substitute_env(value: Any, env: Mapping[str, str]) -> Any:
    """Recursively replace ${VAR} and ${VAR:-default} in string values.

    Unset variables without a default become empty strings.
    """
    if isinstance(value, str):
        return _ENV_REFERENCE.sub(
            lambda m: env.get(m.group(1), m.group(2) or ""), value
        )
    if isinstance(value, Mapping):
        return {k: substitute_env(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_env(v, env) for v in value]
    return value


def parse_bool(value: str) -> bool:
    """Parse true/false, 1/0, yes/no, on/off."""
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f'Cannot parse "{value}" as boolean. Use: true/false, 1/0, yes/no, on/off'
    )


def _parse_number(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f'Cannot parse "{value}" as number for {name}') from e


def _require_int(value: Any, name: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return int(value)


def _require_bool(value: Any, name: str) -> bool:
    if isinstance(value, str):
        return parse_bool(value)
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a boolean, got {value!r}")
    return value


def _parse_cache(raw: Mapping[str, Any], env: Mapping[str, str]) -> CacheConfig:
    defaults = CacheConfig()

    enabled = _require_bool(raw.get("enabled", defaults.enabled), "cache.enabled")

    if "max_size_bytes" in raw:
        max_size = _require_int(raw["max_size_bytes"], "cache.max_size_bytes")
    elif "max_size_mb" in raw:
        max_size = _require_int(raw["max_size_mb"] * 1024 * 1024, "cache.max_size_mb")
    else:
        max_size = defaults.max_size_bytes

    if "max_age_ms" in raw:
        max_age: int | None = _require_int(raw["max_age_ms"], "cache.max_age_ms")
    elif "max_age_days" in raw:
        max_age = _require_int(
            raw["max_age_days"] * 24 * 60 * 60 * 1000, "cache.max_age_days"
        )
    else:
        max_age = defaults.max_age_ms

    max_entries = _require_int(
        raw.get("max_entries", defaults.max_entries), "cache.max_entries"
    )
    cache_dir = Path(raw.get("cache_dir") or defaults.cache_dir).expanduser()

    norm_raw = raw.get("normalization", {})
    normalization = NormalizationConfig(
        case_sensitive=_require_bool(
            norm_raw.get("case_sensitive", False), "cache.normalization.case_sensitive"
        ),
        strip_priority_prefixes=_require_bool(
            norm_raw.get("strip_priority_prefixes", True),
            "cache.normalization.strip_priority_prefixes",
        ),
        normalize_whitespace=_require_bool(
            norm_raw.get("normalize_whitespace", True),
            "cache.normalization.normalize_whitespace",
        ),
    )

    # Env vars override config file values
    if "HOOKVOICE_CACHE_ENABLED" in env:
        enabled = parse_bool(env["HOOKVOICE_CACHE_ENABLED"])
    if "HOOKVOICE_CACHE_MAX_SIZE_MB" in env:
        mb = _parse_number(env["HOOKVOICE_CACHE_MAX_SIZE_MB"], "HOOKVOICE_CACHE_MAX_SIZE_MB")
        max_size = _require_int(mb * 1024 * 1024, "HOOKVOICE_CACHE_MAX_SIZE_MB")
    if "HOOKVOICE_CACHE_MAX_AGE_DAYS" in env:
        days = _parse_number(
            env["HOOKVOICE_CACHE_MAX_AGE_DAYS"], "HOOKVOICE_CACHE_MAX_AGE_DAYS"
        )
        max_age = _require_int(days * 24 * 60 * 60 * 1000, "HOOKVOICE_CACHE_MAX_AGE_DAYS")
    if "HOOKVOICE_CACHE_MAX_ENTRIES" in env:
        max_entries = _require_int(
            _parse_number(env["HOOKVOICE_CACHE_MAX_ENTRIES"], "HOOKVOICE_CACHE_MAX_ENTRIES"),
            "HOOKVOICE_CACHE_MAX_ENTRIES",
        )
    if env.get("HOOKVOICE_CACHE_DIR"):
        cache_dir = Path(env["HOOKVOICE_CACHE_DIR"]).expanduser()

    return CacheConfig(
        enabled=enabled,
        max_size_bytes=max_size,
        max_age_ms=max_age,
        max_entries=max_entries,
        cache_dir=cache_dir,
        normalization=normalization,
    )


def _parse_criteria(raw: Mapping[str, Any], env: Mapping[str, str]) -> DefaultCriteria:
    defaults = DefaultCriteria()
    allow_fallback = _require_bool(
        raw.get("allow_fallback", defaults.allow_fallback),
        "default_criteria.allow_fallback",
    )
    max_response = _require_int(
        raw.get("max_response_time_ms", defaults.max_response_time_ms),
        "default_criteria.max_response_time_ms",
        minimum=1,
    )

    if "HOOKVOICE_ALLOW_FALLBACK" in env:
        allow_fallback = parse_bool(env["HOOKVOICE_ALLOW_FALLBACK"])
    if "HOOKVOICE_MAX_RESPONSE_TIME_MS" in env:
        max_response = _require_int(
            _parse_number(
                env["HOOKVOICE_MAX_RESPONSE_TIME_MS"], "HOOKVOICE_MAX_RESPONSE_TIME_MS"
            ),
            "HOOKVOICE_MAX_RESPONSE_TIME_MS",
            minimum=1,
        )

    return DefaultCriteria(
        allow_fallback=allow_fallback, max_response_time_ms=max_response
    )


def _parse_provider(raw: Any, index: int) -> ProviderConfig:
    where = f"providers[{index}]"
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{where} must be a table")

    provider_id = raw.get("id")
    if not isinstance(provider_id, str) or not provider_id.strip():
        raise ConfigurationError(f"{where}.id is required")

    provider_type = raw.get("type", provider_id)
    if provider_type not in PROVIDER_TYPES:
        raise ConfigurationError(
            f"{where}.type must be one of: {', '.join(PROVIDER_TYPES)}, got {provider_type!r}"
        )

    if "priority" not in raw:
        raise ConfigurationError(f"{where}.priority is required")
    priority = raw["priority"]
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ConfigurationError(f"{where}.priority must be an integer")

    max_response = raw.get("max_response_time_ms")
    if max_response is not None:
        max_response = _require_int(
            max_response, f"{where}.max_response_time_ms", minimum=1
        )

    return ProviderConfig(
        id=provider_id,
        type=provider_type,
        priority=priority,
        enabled=_require_bool(raw.get("enabled", True), f"{where}.enabled"),
        api_key=raw.get("api_key") or None,
        voice=raw.get("voice") or None,
        model=raw.get("model") or None,
        max_response_time_ms=max_response,
        supported_voices=tuple(raw.get("supported_voices", ())),
        supported_formats=tuple(raw.get("supported_formats", ())),
    )
