"""Resolve the TCP port a backend process is listening on."""

from __future__ import annotations

from typing import Callable, List

import psutil

from localms.kernel.errors import PortResolutionError

PortInspector = Callable[[int], List[int]]


def listening_ports(pid: int) -> List[int]:
    """Return sorted TCP ports in LISTEN state owned by ``pid``."""
    proc = psutil.Process(pid)
    ports = set()
    for conn in proc.net_connections(kind="tcp"):
        if conn.status != psutil.CONN_LISTEN or not conn.laddr:
            continue
        ports.add(int(conn.laddr.port))
    return sorted(ports)


def resolve_port(recorded_port: int, pid: int, inspector: PortInspector = listening_ports) -> int:
    """Prefer the port recorded at launch; otherwise ask the OS."""
    if recorded_port:
        return int(recorded_port)

    try:
        ports = inspector(pid)
    except (psutil.NoSuchProcess, psutil.AccessDenied, OSError) as exc:
        raise PortResolutionError(
            "failed to inspect sockets of process {0}: {1}".format(pid, exc),
            pid=pid,
        ) from exc
    if not ports:
        raise PortResolutionError(
            "process {0} holds no listening TCP socket".format(pid),
            pid=pid,
        )
    return ports[0]
