"""Static description of every supported backend kind."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

MLX_LM = "mlx_lm"
OLLAMA = "ollama"
SUPPORTED_KINDS: Tuple[str, ...] = (OLLAMA, MLX_LM)

DEFAULT_HOST = "127.0.0.1"


@dataclass(frozen=True)
class ProcessSignature:
    """How a running backend shows up in the OS process table.

    ``executable`` matches the process name (or the basename of argv[0]).
    When ``interpreter_prefix`` is set the backend runs as an interpreted
    script: the process name must start with the prefix and the joined
    command line must contain ``cmdline_fragment``.
    """

    executable: str = ""
    interpreter_prefix: str = ""
    cmdline_fragment: str = ""


@dataclass(frozen=True)
class BackendSpec:
    kind: str
    default_port: int
    health_path: str
    chat_path: str
    signature: ProcessSignature
    probe_interval_sec: float
    probe_timeout_sec: float
    loads_model_path: bool = True
    binary: Optional[str] = None
    python_module: Optional[str] = None


BACKEND_SPECS: Dict[str, BackendSpec] = {
    MLX_LM: BackendSpec(
        kind=MLX_LM,
        default_port=8080,
        health_path="/v1/models",
        chat_path="/v1/chat/completions",
        signature=ProcessSignature(
            interpreter_prefix="python",
            cmdline_fragment="mlx_lm.server",
        ),
        probe_interval_sec=1.0,
        probe_timeout_sec=60.0,
        loads_model_path=True,
        binary="mlx_lm.server",
        python_module="mlx_lm",
    ),
    OLLAMA: BackendSpec(
        kind=OLLAMA,
        default_port=11434,
        health_path="/api/tags",
        chat_path="/api/chat",
        signature=ProcessSignature(
            executable="ollama",
            cmdline_fragment="serve",
        ),
        probe_interval_sec=0.5,
        probe_timeout_sec=30.0,
        loads_model_path=False,
        binary="ollama",
    ),
}


def get_spec(kind: str) -> BackendSpec:
    normalized = str(kind or "").strip().lower()
    spec = BACKEND_SPECS.get(normalized)
    if spec is None:
        raise ValueError(
            "unsupported backend kind: {0} (supported: {1})".format(
                kind or "<empty>",
                "|".join(SUPPORTED_KINDS),
            )
        )
    return spec
