"""OS process snapshot, signature matching and signalling via psutil."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import psutil

from localms.backends.kinds import ProcessSignature


@dataclass(frozen=True)
class ProcessInfo:
    pid: int
    name: str
    cmdline: Tuple[str, ...] = field(default_factory=tuple)


def snapshot_processes() -> List[ProcessInfo]:
    snapshot: List[ProcessInfo] = []
    for proc in psutil.process_iter(["pid", "name", "cmdline"]):
        info = proc.info
        snapshot.append(
            ProcessInfo(
                pid=int(info.get("pid") or proc.pid),
                name=str(info.get("name") or ""),
                cmdline=tuple(str(part) for part in (info.get("cmdline") or [])),
            )
        )
    return snapshot


def matches_signature(signature: ProcessSignature, info: ProcessInfo) -> bool:
    name = info.name.lower()
    argv0 = os.path.basename(info.cmdline[0]).lower() if info.cmdline else ""
    joined = " ".join(info.cmdline)

    if signature.interpreter_prefix:
        prefix = signature.interpreter_prefix.lower()
        if not (name.startswith(prefix) or argv0.startswith(prefix)):
            return False
        return bool(signature.cmdline_fragment) and signature.cmdline_fragment in joined

    if signature.executable:
        executable = signature.executable.lower()
        if executable not in (name, argv0):
            return False
        if signature.cmdline_fragment:
            return signature.cmdline_fragment in info.cmdline[1:]
        return True
    return False


def find_matching_pids(signature: ProcessSignature, snapshot: Sequence[ProcessInfo]) -> List[int]:
    """Pids in ``snapshot`` matching ``signature``, lowest first."""
    return sorted(info.pid for info in snapshot if matches_signature(signature, info))


def kill_process(pid: int, wait_sec: float = 5.0) -> None:
    """Send SIGKILL to ``pid`` and wait briefly for it to disappear.

    Raises psutil.NoSuchProcess / psutil.AccessDenied to the caller.
    """
    proc = psutil.Process(pid)
    proc.kill()
    try:
        proc.wait(timeout=wait_sec)
    except psutil.TimeoutExpired:
        return
