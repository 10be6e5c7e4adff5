"""Ollama supervisor (native binary backend)."""

from __future__ import annotations

import os
from typing import Any, Dict, List

from localms.backends.availability import is_binary_available
from localms.backends.base import BackendHandle, BackendSupervisor
from localms.backends.kinds import BACKEND_SPECS, OLLAMA


class OllamaSupervisor(BackendSupervisor):
    """``ollama serve`` takes its bind address from OLLAMA_HOST, not flags."""

    def __init__(self, handle: BackendHandle, **kwargs: Any) -> None:
        super().__init__(handle, spec=BACKEND_SPECS[OLLAMA], **kwargs)

    def is_available(self) -> bool:
        return is_binary_available(str(self.spec.binary))

    def build_command(self, port: int) -> List[str]:
        del port
        return [str(self.spec.binary), "serve"]

    def build_env(self, port: int) -> Dict[str, str]:
        env = dict(os.environ)
        env["OLLAMA_HOST"] = "{0}:{1}".format(self.host, port)
        return env
