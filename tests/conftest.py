from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import pytest

from localms.backends.processes import ProcessInfo
from localms.config import initialize_config, load_settings


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "home"
    home.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("OLLAMA_MODELS", raising=False)
    return home


@pytest.fixture
def settings(isolated_home: Path, tmp_path: Path):
    initialize_config(home=isolated_home)
    loaded = load_settings(home=isolated_home)
    loaded.backend_logs_dir = tmp_path / "backend-logs"
    return loaded


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakePopen:
    def __init__(self, world: "FakeProcessWorld", command, **kwargs) -> None:
        self.pid = world.next_pid
        world.next_pid += 1
        self.command = list(command)
        self.kwargs: Dict[str, object] = dict(kwargs)
        self.returncode = None
        self.waited = False
        world.spawned.append(self)
        world.snapshot.append(
            ProcessInfo(
                pid=self.pid,
                name=Path(self.command[0]).name,
                cmdline=tuple(self.command),
            )
        )

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        del timeout
        self.waited = True
        return self.returncode or 0


class FakeProcessWorld:
    """Stands in for the OS process table, spawning and signalling."""

    def __init__(self) -> None:
        self.snapshot: List[ProcessInfo] = []
        self.spawned: List[FakePopen] = []
        self.killed: List[int] = []
        self.inspected: List[int] = []
        self.listening: Dict[int, List[int]] = {}
        self.next_pid = 4242

    def snapshot_processes(self) -> List[ProcessInfo]:
        return list(self.snapshot)

    def kill_process(self, pid: int, wait_sec: float = 5.0) -> None:
        del wait_sec
        self.killed.append(pid)
        self.snapshot = [info for info in self.snapshot if info.pid != pid]

    def listening_ports(self, pid: int) -> List[int]:
        self.inspected.append(pid)
        return sorted(self.listening.get(pid, []))

    def popen(self, command, **kwargs) -> FakePopen:
        return FakePopen(self, command, **kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def process_world(monkeypatch: pytest.MonkeyPatch) -> FakeProcessWorld:
    world = FakeProcessWorld()
    monkeypatch.setattr("localms.backends.base.snapshot_processes", world.snapshot_processes)
    monkeypatch.setattr("localms.backends.base.kill_process", world.kill_process)
    monkeypatch.setattr("localms.backends.base.listening_ports", world.listening_ports)
    monkeypatch.setattr("localms.backends.base.subprocess.Popen", world.popen)
    monkeypatch.setattr("localms.backends.mlx_lm.is_python_module_available", lambda *args, **kwargs: True)
    monkeypatch.setattr("localms.backends.ollama.is_binary_available", lambda *args, **kwargs: True)
    return world
