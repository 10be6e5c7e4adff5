"""Configuration loading and directory resolution for localms."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

try:  # pragma: no cover - exercised on Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for Python 3.9/3.10
    import tomli as tomllib  # type: ignore[no-redef]

from localms.backends.kinds import BACKEND_SPECS, DEFAULT_HOST, SUPPORTED_KINDS
from localms.kernel.errors import ConfigError

CONFIG_DIR_NAME = ".localms"
CONFIG_FILE_NAME = "config.toml"
MODELS_DIR_NAME = "models"
LOGS_DIR_NAME = "logs"

DEFAULT_PYTHON = "python3"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 512
DEFAULT_STREAM = False
DEFAULT_REQUEST_TIMEOUT_SEC = 300.0
MAX_TEMPERATURE = 2.0
DEFAULT_LOGS_ENABLED = True
DEFAULT_LOGS_MAX_FILE_BYTES = 10 * 1024 * 1024
DEFAULT_LOGS_MAX_FILES = 5
DEFAULT_LOGS_REDACTION = "default"
ALLOWED_LOG_REDACTION = ("default", "none", "strict")


@dataclass
class BackendSettings:
    kind: str
    host: str = DEFAULT_HOST
    port: int = 0
    probe_interval_sec: float = 1.0
    probe_timeout_sec: float = 60.0


def default_backend_settings() -> Dict[str, BackendSettings]:
    return {
        kind: BackendSettings(
            kind=kind,
            host=DEFAULT_HOST,
            port=spec.default_port,
            probe_interval_sec=spec.probe_interval_sec,
            probe_timeout_sec=spec.probe_timeout_sec,
        )
        for kind, spec in BACKEND_SPECS.items()
    }


@dataclass
class ChatSettings:
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    stream: bool = DEFAULT_STREAM
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC
    system_prompt: str = ""


@dataclass
class Settings:
    """Resolved runtime settings for one CLI invocation."""

    config_root: Path
    models_root: Path
    backend_logs_dir: Path
    ollama_models_dir: Optional[Path] = None
    python: str = DEFAULT_PYTHON
    backends: Dict[str, BackendSettings] = field(default_factory=default_backend_settings)
    chat: ChatSettings = field(default_factory=ChatSettings)
    logs_enabled: bool = DEFAULT_LOGS_ENABLED
    logs_max_file_bytes: int = DEFAULT_LOGS_MAX_FILE_BYTES
    logs_max_files: int = DEFAULT_LOGS_MAX_FILES
    logs_redaction: str = DEFAULT_LOGS_REDACTION

    @property
    def config_file(self) -> Path:
        return self.config_root / CONFIG_FILE_NAME

    @property
    def logs_dir(self) -> Path:
        return self.config_root / LOGS_DIR_NAME

    def backend(self, kind: str) -> BackendSettings:
        settings = self.backends.get(kind)
        if settings is None:
            settings = default_backend_settings().get(kind) or BackendSettings(kind=kind)
        return settings


def resolve_config_root(home: Optional[Path] = None) -> Path:
    return (home or Path.home()).expanduser() / CONFIG_DIR_NAME


def config_exists(home: Optional[Path] = None) -> bool:
    return (resolve_config_root(home) / CONFIG_FILE_NAME).is_file()


def _safe_positive_int(value: object, default: int) -> int:
    try:
        converted = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if converted <= 0:
        return default
    return converted


def _safe_positive_float(value: object, default: float) -> float:
    try:
        converted = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if converted <= 0:
        return default
    return converted


def _safe_temperature(value: object, default: float) -> float:
    try:
        converted = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if converted < 0 or converted > MAX_TEMPERATURE:
        return default
    return converted


def _safe_port(value: object, default: int) -> int:
    converted = _safe_positive_int(value, default)
    if converted > 65535:
        return default
    return converted


def _safe_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default


def _safe_redaction(value: object, default: str) -> str:
    normalized = str(value or default).strip().lower()
    if normalized not in ALLOWED_LOG_REDACTION:
        return default
    return normalized


def _safe_path(value: object, default: Path) -> Path:
    text = str(value or "").strip()
    if not text:
        return default
    return Path(text).expanduser()


def _safe_backends(data: Dict[str, object]) -> Dict[str, BackendSettings]:
    parsed = default_backend_settings()
    for kind in SUPPORTED_KINDS:
        raw = data.get(kind)
        if not isinstance(raw, dict):
            continue
        defaults = parsed[kind]
        parsed[kind] = BackendSettings(
            kind=kind,
            host=str(raw.get("host") or defaults.host).strip() or defaults.host,
            port=_safe_port(raw.get("port"), defaults.port),
            probe_interval_sec=_safe_positive_float(raw.get("probe_interval"), defaults.probe_interval_sec),
            probe_timeout_sec=_safe_positive_float(raw.get("probe_timeout"), defaults.probe_timeout_sec),
        )
    return parsed


def _default_ollama_models_dir(config_root: Path) -> Path:
    """Where `ollama pull` stores models: $OLLAMA_MODELS, else ~/.ollama/models."""
    override = str(os.environ.get("OLLAMA_MODELS") or "").strip()
    if override:
        return Path(override).expanduser()
    return config_root.parent / ".ollama" / "models"


def _parse_settings(data: Dict[str, object], config_root: Path) -> Settings:
    paths = data.get("paths") if isinstance(data.get("paths"), dict) else {}
    runtime = data.get("runtime") if isinstance(data.get("runtime"), dict) else {}
    backends = data.get("backends") if isinstance(data.get("backends"), dict) else {}
    chat = data.get("chat") if isinstance(data.get("chat"), dict) else {}
    logs = runtime.get("logs") if isinstance(runtime.get("logs"), dict) else {}  # type: ignore[union-attr]

    return Settings(
        config_root=config_root,
        models_root=_safe_path(paths.get("models_root"), config_root / MODELS_DIR_NAME),  # type: ignore[union-attr]
        backend_logs_dir=_safe_path(paths.get("backend_logs_dir"), Path(tempfile.gettempdir())),  # type: ignore[union-attr]
        ollama_models_dir=_safe_path(paths.get("ollama_models"), _default_ollama_models_dir(config_root)),  # type: ignore[union-attr]
        python=str(runtime.get("python") or DEFAULT_PYTHON).strip() or DEFAULT_PYTHON,  # type: ignore[union-attr]
        backends=_safe_backends(backends),  # type: ignore[arg-type]
        chat=ChatSettings(
            temperature=_safe_temperature(chat.get("temperature"), DEFAULT_TEMPERATURE),  # type: ignore[union-attr]
            max_tokens=_safe_positive_int(chat.get("max_tokens"), DEFAULT_MAX_TOKENS),  # type: ignore[union-attr]
            stream=_safe_bool(chat.get("stream"), DEFAULT_STREAM),  # type: ignore[union-attr]
            request_timeout_sec=_safe_positive_float(
                chat.get("request_timeout"),  # type: ignore[union-attr]
                DEFAULT_REQUEST_TIMEOUT_SEC,
            ),
            system_prompt=str(chat.get("system_prompt") or ""),  # type: ignore[union-attr]
        ),
        logs_enabled=_safe_bool(logs.get("enabled"), DEFAULT_LOGS_ENABLED),  # type: ignore[union-attr]
        logs_max_file_bytes=_safe_positive_int(logs.get("max_file_bytes"), DEFAULT_LOGS_MAX_FILE_BYTES),  # type: ignore[union-attr]
        logs_max_files=_safe_positive_int(logs.get("max_files"), DEFAULT_LOGS_MAX_FILES),  # type: ignore[union-attr]
        logs_redaction=_safe_redaction(logs.get("redaction"), DEFAULT_LOGS_REDACTION),  # type: ignore[union-attr]
    )


def load_settings(home: Optional[Path] = None) -> Settings:
    """Load settings; a missing config file yields defaults."""
    config_root = resolve_config_root(home)
    config_file = config_root / CONFIG_FILE_NAME
    if not config_file.is_file():
        return _parse_settings({}, config_root)

    try:
        with config_file.open("rb") as fp:
            data = tomllib.load(fp)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError("invalid config file {0}: {1}".format(config_file, exc)) from exc
    return _parse_settings(data, config_root)


def _toml_string(value: object) -> str:
    text = str(value or "").replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return '"{0}"'.format(text)


def _render_config(settings: Settings) -> str:
    lines: List[str] = [
        "[paths]",
        "models_root = {0}".format(_toml_string(settings.models_root)),
        "backend_logs_dir = {0}".format(_toml_string(settings.backend_logs_dir)),
        "ollama_models = {0}".format(_toml_string(settings.ollama_models_dir or "")),
        "",
        "[runtime]",
        "python = {0}".format(_toml_string(settings.python)),
        "",
        "[runtime.logs]",
        "enabled = {0}".format(str(bool(settings.logs_enabled)).lower()),
        "max_file_bytes = {0}".format(settings.logs_max_file_bytes),
        "max_files = {0}".format(settings.logs_max_files),
        "redaction = {0}".format(_toml_string(settings.logs_redaction)),
        "",
        "[chat]",
        "temperature = {0}".format(settings.chat.temperature),
        "max_tokens = {0}".format(settings.chat.max_tokens),
        "stream = {0}".format(str(bool(settings.chat.stream)).lower()),
        "request_timeout = {0}".format(settings.chat.request_timeout_sec),
        "system_prompt = {0}".format(_toml_string(settings.chat.system_prompt)),
        "",
    ]
    for kind in SUPPORTED_KINDS:
        backend = settings.backend(kind)
        lines.extend(
            [
                "[backends.{0}]".format(kind),
                "host = {0}".format(_toml_string(backend.host)),
                "port = {0}".format(backend.port),
                "probe_interval = {0}".format(backend.probe_interval_sec),
                "probe_timeout = {0}".format(backend.probe_timeout_sec),
                "",
            ]
        )
    return "\n".join(lines)


def initialize_config(force: bool = False, home: Optional[Path] = None) -> Path:
    """Create the config directory, default config file and models root.

    ``force`` rewrites config.toml with defaults. Model weights and logs
    under the config root are never removed.
    """
    config_root = resolve_config_root(home)
    settings = _parse_settings({}, config_root)
    try:
        config_root.mkdir(parents=True, exist_ok=True)
        for kind in SUPPORTED_KINDS:
            (settings.models_root / kind).mkdir(parents=True, exist_ok=True)
        if force or not settings.config_file.exists():
            settings.config_file.write_text(_render_config(settings), encoding="utf-8")
    except OSError as exc:
        raise ConfigError("failed to initialize {0}: {1}".format(config_root, exc)) from exc
    return config_root
