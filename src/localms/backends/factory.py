"""Supervisor factory keyed by backend kind."""

from __future__ import annotations

from typing import Any, Optional

from localms.backends.base import BackendHandle, BackendSupervisor
from localms.backends.kinds import MLX_LM, OLLAMA, get_spec
from localms.backends.mlx_lm import MlxLMSupervisor
from localms.backends.ollama import OllamaSupervisor
from localms.config import Settings
from localms.kernel.types import EventSink


def build_supervisor(
    kind: str,
    model: str,
    settings: Settings,
    *,
    event_sink: Optional[EventSink] = None,
    **overrides: Any,
) -> BackendSupervisor:
    spec = get_spec(kind)
    backend = settings.backend(spec.kind)
    kwargs = {
        "models_root": settings.models_root,
        "logs_dir": settings.backend_logs_dir,
        "host": backend.host,
        "port": backend.port,
        "probe_interval_sec": backend.probe_interval_sec,
        "probe_timeout_sec": backend.probe_timeout_sec,
        "event_sink": event_sink,
    }
    kwargs.update(overrides)
    handle = BackendHandle(kind=spec.kind, model=model)

    if spec.kind == MLX_LM:
        return MlxLMSupervisor(handle, python=settings.python, **kwargs)
    if spec.kind == OLLAMA:
        return OllamaSupervisor(handle, **kwargs)
    raise ValueError("no supervisor registered for backend kind: {0}".format(spec.kind))
