"""Backend lifecycle: kinds, process inspection, health probing, supervisors."""

from localms.backends.base import BackendHandle, BackendSupervisor, managed_backend
from localms.backends.kinds import BACKEND_SPECS, SUPPORTED_KINDS, BackendSpec, get_spec

__all__ = [
    "BACKEND_SPECS",
    "SUPPORTED_KINDS",
    "BackendHandle",
    "BackendSpec",
    "BackendSupervisor",
    "get_spec",
    "managed_backend",
]
