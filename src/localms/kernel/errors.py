"""Error taxonomy shared by the backend supervisor and chat driver."""

from __future__ import annotations

from typing import Any, Dict


class LocalmsError(RuntimeError):
    """Base error carrying diagnostic details (pid, port, status, ...)."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self._details: Dict[str, Any] = {}
        for key, value in details.items():
            if value is None:
                continue
            self._details[str(key)] = value

    @property
    def details(self) -> Dict[str, Any]:
        return dict(self._details)


def error_summary(exc: BaseException) -> str:
    detail = exc.details if isinstance(exc, LocalmsError) else {}
    ordered_keys = (
        "kind",
        "model",
        "pid",
        "port",
        "status",
        "log_path",
    )
    segments = [str(exc)]
    for key in ordered_keys:
        value = detail.get(key)
        if value in ("", None):
            continue
        segments.append("{0}={1}".format(key, value))
    return " | ".join(segments)


class ConfigError(LocalmsError):
    """Raised when the config file exists but cannot be parsed."""


class DiscoveryError(LocalmsError):
    """Raised when installed models cannot be enumerated (not when none exist)."""


class NotInstalledError(LocalmsError):
    """Backend software is absent; the user must install it."""


class StartError(LocalmsError):
    """Backend process could not be brought to a reachable state."""


class ModelNotFoundError(StartError):
    """Configured model weights are missing on disk."""


class StartTimeoutError(StartError):
    """Health probe never succeeded within the configured timeout."""


class StartCancelledError(StartError):
    """Caller aborted the wait for the backend to become reachable."""


class BackendExitedError(StartError):
    """Spawned backend process exited before it became reachable."""


class NotRunningError(LocalmsError):
    """Operation required a live backend process that is not live."""


class StopError(LocalmsError):
    """Termination signal could not be delivered."""


class PortResolutionError(LocalmsError):
    """Process exists but no listening socket was found, or inspection failed."""


class TransportError(LocalmsError):
    """Network-level failure reaching an assumed-live backend."""


class ResponseDecodeError(TransportError):
    """Backend replied with a body that does not match its wire schema."""


class BackendError(LocalmsError):
    """Backend API rejected a request with a non-success status."""

    def __init__(self, status: int, body: str, **details: Any) -> None:
        super().__init__(
            "backend returned status {0}: {1}".format(status, body),
            status=status,
            **details,
        )
        self.status = int(status)
        self.body = body
