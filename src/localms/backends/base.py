"""Backend lifecycle supervisor shared by every backend kind."""

from __future__ import annotations

import os
import subprocess
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import psutil

from localms.backends.kinds import DEFAULT_HOST, BackendSpec
from localms.backends.ports import listening_ports, resolve_port
from localms.backends.probe import (
    ProbeCancelled,
    ProbeTimeout,
    http_liveness_check,
    wait_until_reachable,
)
from localms.backends.processes import find_matching_pids, kill_process, snapshot_processes
from localms.kernel.errors import (
    BackendExitedError,
    ModelNotFoundError,
    NotInstalledError,
    NotRunningError,
    StartCancelledError,
    StartError,
    StartTimeoutError,
    StopError,
)
from localms.kernel.types import EventSink

STATE_UNKNOWN = "unknown"
STATE_NOT_INSTALLED = "not_installed"
STATE_INSTALLED = "installed"
STATE_STOPPED = "stopped"
STATE_STARTING = "starting"
STATE_RUNNING = "running"
STATE_FAILED = "failed"

LivenessCheck = Callable[[str], bool]


@dataclass
class BackendHandle:
    """Runtime record for one backend instance.

    ``port`` stays 0 until a health probe has succeeded against it;
    ``owned_pid`` is non-zero only when this program spawned the process.
    """

    kind: str
    model: str
    port: int = 0
    owned_pid: int = 0
    state: str = STATE_UNKNOWN

    @property
    def owned(self) -> bool:
        return self.owned_pid > 0


class BackendSupervisor(ABC):
    """Availability, running check, start, stop and port query for one backend."""

    def __init__(
        self,
        handle: BackendHandle,
        *,
        spec: BackendSpec,
        models_root: Path,
        logs_dir: Path,
        host: str = DEFAULT_HOST,
        port: Optional[int] = None,
        probe_interval_sec: Optional[float] = None,
        probe_timeout_sec: Optional[float] = None,
        liveness_check: LivenessCheck = http_liveness_check,
        event_sink: Optional[EventSink] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.handle = handle
        self.spec = spec
        self.host = host
        self._models_root = Path(models_root)
        self._logs_dir = Path(logs_dir)
        self._launch_port = int(port or spec.default_port)
        self._probe_interval_sec = float(probe_interval_sec or spec.probe_interval_sec)
        self._probe_timeout_sec = float(probe_timeout_sec or spec.probe_timeout_sec)
        self._liveness_check = liveness_check
        self._event_sink = event_sink
        self._sleep = sleep
        self._clock = clock
        self._process: Optional[subprocess.Popen] = None

    @property
    def kind(self) -> str:
        return self.spec.kind

    @property
    def log_path(self) -> Path:
        return self._logs_dir / "{0}_server.log".format(self.kind)

    @property
    def model_path(self) -> Path:
        return self._models_root / self.kind / self.handle.model

    def url_for(self, port: int, path: str) -> str:
        return "http://{0}:{1}{2}".format(self.host, port, path)

    @abstractmethod
    def is_available(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def build_command(self, port: int) -> List[str]:
        raise NotImplementedError

    def build_env(self, port: int) -> Dict[str, str]:
        del port
        return dict(os.environ)

    def is_running(self) -> Tuple[bool, int]:
        pids = find_matching_pids(self.spec.signature, snapshot_processes())
        if not pids:
            return False, 0
        if len(pids) > 1:
            self._emit(
                "backend.process.ambiguous",
                {"kind": self.kind, "pids": pids, "owned_pid": self.handle.owned_pid},
            )
        if self.handle.owned_pid in pids:
            return True, self.handle.owned_pid
        return True, pids[0]

    def refresh_state(self) -> str:
        """Walk Unknown -> NotInstalled|Installed -> Stopped|Running."""
        if not self.is_available():
            self.handle.state = STATE_NOT_INSTALLED
            return self.handle.state
        self.handle.state = STATE_INSTALLED
        running, _pid = self.is_running()
        self.handle.state = STATE_RUNNING if running else STATE_STOPPED
        return self.handle.state

    def start(self, cancel_event: Optional[threading.Event] = None) -> None:
        if not self.is_available():
            self.handle.state = STATE_NOT_INSTALLED
            raise NotInstalledError(
                "{0} is not installed".format(self.kind),
                kind=self.kind,
            )
        if self.spec.loads_model_path and not self.model_path.exists():
            self.handle.state = STATE_FAILED
            raise ModelNotFoundError(
                "model path does not exist: {0}".format(self.model_path),
                kind=self.kind,
                model=self.handle.model,
            )
        running, pid = self.is_running()
        if running:
            self.handle.state = STATE_RUNNING
            raise StartError(
                "{0} is already running".format(self.kind),
                kind=self.kind,
                pid=pid,
            )

        port = self._launch_port
        command = self.build_command(port)
        self.handle.state = STATE_STARTING
        process = self._spawn(command, port)
        self._process = process
        self.handle.owned_pid = process.pid
        self._emit(
            "backend.start.spawned",
            {"kind": self.kind, "pid": process.pid, "port": port, "command": command, "log_path": str(self.log_path)},
        )

        health_url = self.url_for(port, self.spec.health_path)

        def check() -> bool:
            returncode = process.poll()
            if returncode is not None:
                raise BackendExitedError(
                    "{0} exited with code {1} before becoming reachable".format(self.kind, returncode),
                    kind=self.kind,
                    pid=process.pid,
                    port=port,
                    log_path=str(self.log_path),
                )
            return self._liveness_check(health_url)

        try:
            attempts = wait_until_reachable(
                check,
                interval_sec=self._probe_interval_sec,
                timeout_sec=self._probe_timeout_sec,
                cancel_event=cancel_event,
                sleep=self._sleep,
                clock=self._clock,
            )
        except ProbeTimeout as exc:
            self._abort_start("timeout")
            raise StartTimeoutError(
                "{0} did not become reachable within {1:.0f}s".format(self.kind, self._probe_timeout_sec),
                kind=self.kind,
                pid=process.pid,
                port=port,
                log_path=str(self.log_path),
            ) from exc
        except ProbeCancelled as exc:
            self._abort_start("cancelled")
            raise StartCancelledError(
                "start of {0} cancelled".format(self.kind),
                kind=self.kind,
                pid=process.pid,
                port=port,
            ) from exc
        except BaseException:
            self._abort_start("failed")
            raise

        self.handle.port = port
        self.handle.state = STATE_RUNNING
        self._emit(
            "backend.probe.ready",
            {"kind": self.kind, "pid": process.pid, "port": port, "attempts": attempts},
        )

    def stop(self) -> None:
        running, pid = self.is_running()
        if not running:
            raise NotRunningError("{0} is not running".format(self.kind), kind=self.kind)

        try:
            kill_process(pid)
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied as exc:
            raise StopError(
                "failed to kill process with pid {0}: {1}".format(pid, exc),
                kind=self.kind,
                pid=pid,
            ) from exc

        process = self._process
        if process is not None and process.pid == pid:
            try:
                process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                pass
            self._process = None
        if self.handle.owned_pid == pid:
            self.handle.owned_pid = 0
        self.handle.port = 0
        self.handle.state = STATE_STOPPED
        self._emit("backend.stop.completed", {"kind": self.kind, "pid": pid})

    def get_port(self) -> int:
        running, pid = self.is_running()
        if not running:
            raise NotRunningError("{0} is not running".format(self.kind), kind=self.kind)
        if self.handle.port:
            return self.handle.port

        port = resolve_port(self.handle.port, pid, inspector=listening_ports)
        if self._liveness_check(self.url_for(port, self.spec.health_path)):
            self.handle.port = port
            self.handle.state = STATE_RUNNING
        self._emit("backend.port.resolved", {"kind": self.kind, "pid": pid, "port": port})
        return port

    def _spawn(self, command: List[str], port: int) -> subprocess.Popen:
        try:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            with self.log_path.open("wb") as log_fp:
                return subprocess.Popen(
                    command,
                    stdin=subprocess.DEVNULL,
                    stdout=log_fp,
                    stderr=subprocess.STDOUT,
                    env=self.build_env(port),
                    start_new_session=True,
                )
        except OSError as exc:
            self.handle.state = STATE_FAILED
            raise StartError(
                "failed to start {0}: {1}".format(self.kind, exc),
                kind=self.kind,
                log_path=str(self.log_path),
            ) from exc

    def _abort_start(self, reason: str) -> None:
        self._emit("backend.start.{0}".format(reason), {"kind": self.kind, "pid": self.handle.owned_pid})
        try:
            self.stop()
        except NotRunningError:
            process = self._process
            if process is not None:
                try:
                    process.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    pass
            self._process = None
            self.handle.owned_pid = 0
            self.handle.port = 0
        self.handle.state = STATE_FAILED

    def _emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self._event_sink is None:
            return
        self._event_sink(event_type, payload)


@contextmanager
def managed_backend(
    supervisor: BackendSupervisor,
    cancel_event: Optional[threading.Event] = None,
) -> Iterator[int]:
    """Yield the backend port; stop the backend on exit only if we started it."""
    started = False
    running, _pid = supervisor.is_running()
    if not running:
        supervisor.start(cancel_event=cancel_event)
        started = True
    try:
        yield supervisor.get_port()
    finally:
        if started:
            try:
                supervisor.stop()
            except NotRunningError:
                pass
