from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = Path("config/app.yaml")


def _find_repo_root(start: Path) -> Path:
    """Best-effort find repository root from a file path."""
    p = start.resolve()
    for parent in [p] + list(p.parents):
        if (parent / ".git").exists():
            return parent
        if (parent / "pyproject.toml").exists() and (parent / "apps").is_dir():
            return parent
    # apps/live2d_planner/core/settings.py
    return p.parents[3]


def _resolve(path: Path, repo_root: Path) -> Path:
    return path if path.is_absolute() else (repo_root / path).resolve()


class Settings(BaseSettings):
    """Runtime settings.

    Secrets MUST come from .env or environment variables.
    Non-secrets may additionally live in config/app.yaml.
    """

    model_config = SettingsConfigDict(env_prefix="LIVE2D_", extra="ignore")

    # Server
    server_host: str = Field(default="127.0.0.1")
    server_port: int = Field(default=8787)
    cors_origins: str = Field(default="*")

    # LLM
    llm_provider: str = Field(default="openai")
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-4.1-mini")
    gemini_api_key: str = Field(default="")
    gemini_model: str = Field(default="gemini-2.0-flash-lite")
    llm_timeout_sec: float = Field(default=30.0)
    timeline_max_output_tokens: int = Field(default=5000)
    emotion_max_output_tokens: int = Field(default=512)

    # Planner
    max_params: int = Field(default=280)

    # Logging
    log_level: str = Field(default="INFO")
    logs_dir: Optional[Path] = Field(default=None)

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in (self.cors_origins or "").split(",") if o.strip()] or ["*"]


def _load_app_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def _coerce_int(val: object, default: int, *, min_value: int, max_value: int) -> int:
    try:
        out = int(val)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return default
    return max(min_value, min(max_value, out))


def _coerce_float(val: object, default: float, *, min_value: float, max_value: float) -> float:
    try:
        out = float(val)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if out != out:
        return default
    return max(min_value, min(max_value, out))


def _coerce_str(val: object, default: str) -> str:
    s = str(val).strip() if val is not None else ""
    return s or default


def _coerce_origins(val: object, default: str) -> str:
    if isinstance(val, list):
        val = ",".join(str(o) for o in val)
    return _coerce_str(val, default)


def _coerce_level(val: object, default: str) -> str:
    return _coerce_str(val, default).upper()


def _coerce_provider(val: object, default: str) -> str:
    return _coerce_str(val, default).lower()


def _coerce_path(val: object, default: Optional[Path]) -> Optional[Path]:
    s = str(val).strip() if val is not None else ""
    return Path(s) if s else default


# (section, key) -> (settings field, coercer)
_YAML_FIELDS: Dict[Tuple[str, str], Tuple[str, Callable[[object, Any], Any]]] = {
    ("server", "host"): ("server_host", _coerce_str),
    ("server", "port"): ("server_port", lambda v, d: _coerce_int(v, d, min_value=1, max_value=65535)),
    ("server", "cors_origins"): ("cors_origins", _coerce_origins),
    ("llm", "provider"): ("llm_provider", _coerce_provider),
    ("llm", "openai_model"): ("openai_model", _coerce_str),
    ("llm", "gemini_model"): ("gemini_model", _coerce_str),
    ("llm", "timeout_sec"): ("llm_timeout_sec", lambda v, d: _coerce_float(v, d, min_value=1.0, max_value=300.0)),
    ("llm", "timeline_max_output_tokens"): (
        "timeline_max_output_tokens",
        lambda v, d: _coerce_int(v, d, min_value=256, max_value=32000),
    ),
    ("llm", "emotion_max_output_tokens"): (
        "emotion_max_output_tokens",
        lambda v, d: _coerce_int(v, d, min_value=64, max_value=4096),
    ),
    ("planner", "max_params"): ("max_params", lambda v, d: _coerce_int(v, d, min_value=1, max_value=2000)),
    ("logging", "level"): ("log_level", _coerce_level),
    ("logging", "dir"): ("logs_dir", _coerce_path),
}


def _apply_app_yaml(settings: Settings, raw: Dict[str, Any]) -> None:
    """Overlay YAML values. An explicit LIVE2D_* environment variable wins."""
    for (section, key), (field_name, coerce) in _YAML_FIELDS.items():
        block = raw.get(section)
        if not isinstance(block, dict) or key not in block:
            continue
        if (os.getenv(f"LIVE2D_{field_name.upper()}") or "").strip():
            continue
        setattr(settings, field_name, coerce(block.get(key), getattr(settings, field_name)))


def _map_compat_env() -> None:
    # Only map if missing; never print values.
    compat = {
        "LIVE2D_OPENAI_API_KEY": ("OPENAI_API_KEY",),
        "LIVE2D_GEMINI_API_KEY": ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
        "LIVE2D_OPENAI_MODEL": ("OPENAI_MODEL",),
        "LIVE2D_SERVER_PORT": ("PORT",),
    }
    for target, sources in compat.items():
        if (os.getenv(target) or "").strip():
            continue
        for k in sources:
            v = os.getenv(k)
            if v and v.strip():
                os.environ[target] = v
                break


def load_settings(*, env_file: Optional[Path] = None, config_file: Optional[Path] = None) -> Settings:
    """Build the process-wide settings once, at startup.

    Order: .env (never overriding real env vars) -> environment, then the YAML
    overlay for values the environment leaves unset. Relative paths resolve
    against the repository root, not the working directory.
    """
    repo_root = _find_repo_root(Path(__file__))

    load_dotenv(dotenv_path=str(_resolve(env_file, repo_root)) if env_file else None, override=False)
    _map_compat_env()

    settings = Settings()

    if config_file is None:
        config_file = Path((os.getenv("LIVE2D_CONFIG_FILE") or "").strip() or DEFAULT_CONFIG_PATH)
    _apply_app_yaml(settings, _load_app_yaml(_resolve(config_file, repo_root)))

    settings.llm_provider = (settings.llm_provider or "openai").strip().lower()
    return settings
