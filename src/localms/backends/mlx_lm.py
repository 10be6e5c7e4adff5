"""mlx_lm.server supervisor (Python module backend)."""

from __future__ import annotations

from typing import Any, List

from localms.backends.availability import is_python_module_available
from localms.backends.base import BackendHandle, BackendSupervisor
from localms.backends.kinds import BACKEND_SPECS, MLX_LM


class MlxLMSupervisor(BackendSupervisor):
    def __init__(self, handle: BackendHandle, *, python: str = "python3", **kwargs: Any) -> None:
        super().__init__(handle, spec=BACKEND_SPECS[MLX_LM], **kwargs)
        self._python = python

    def is_available(self) -> bool:
        return is_python_module_available(self._python, str(self.spec.python_module))

    def build_command(self, port: int) -> List[str]:
        return [
            self._python,
            "-m",
            "mlx_lm.server",
            "--model",
            str(self.model_path),
            "--host",
            self.host,
            "--port",
            str(port),
        ]
