from __future__ import annotations

import psutil
import pytest

from localms.backends.kinds import BACKEND_SPECS, MLX_LM, OLLAMA
from localms.backends.ports import resolve_port
from localms.backends.processes import (
    ProcessInfo,
    find_matching_pids,
    matches_signature,
)
from localms.kernel.errors import PortResolutionError

MLX_SIGNATURE = BACKEND_SPECS[MLX_LM].signature
OLLAMA_SIGNATURE = BACKEND_SPECS[OLLAMA].signature


def test_mlx_signature_matches_interpreter_with_module_fragment():
    as_module = ProcessInfo(pid=1, name="python3.11", cmdline=("python3.11", "-m", "mlx_lm.server", "--port", "8080"))
    as_script = ProcessInfo(pid=2, name="Python", cmdline=("/opt/venv/bin/python3", "/opt/venv/bin/mlx_lm.server"))
    other_python = ProcessInfo(pid=3, name="python3", cmdline=("python3", "-m", "http.server"))
    not_python = ProcessInfo(pid=4, name="bash", cmdline=("bash", "-c", "echo mlx_lm.server"))

    assert matches_signature(MLX_SIGNATURE, as_module)
    assert matches_signature(MLX_SIGNATURE, as_script)
    assert not matches_signature(MLX_SIGNATURE, other_python)
    assert not matches_signature(MLX_SIGNATURE, not_python)


def test_ollama_signature_requires_serve_subcommand():
    serve = ProcessInfo(pid=10, name="ollama", cmdline=("/usr/local/bin/ollama", "serve"))
    run = ProcessInfo(pid=11, name="ollama", cmdline=("ollama", "run", "llama3"))
    zombie = ProcessInfo(pid=12, name="ollama", cmdline=())

    assert matches_signature(OLLAMA_SIGNATURE, serve)
    assert not matches_signature(OLLAMA_SIGNATURE, run)
    assert not matches_signature(OLLAMA_SIGNATURE, zombie)


def test_find_matching_pids_handles_zero_and_multiple_matches():
    assert find_matching_pids(OLLAMA_SIGNATURE, []) == []

    snapshot = [
        ProcessInfo(pid=900, name="ollama", cmdline=("ollama", "serve")),
        ProcessInfo(pid=300, name="ollama", cmdline=("ollama", "serve")),
        ProcessInfo(pid=500, name="python3", cmdline=("python3", "-m", "mlx_lm.server")),
    ]
    assert find_matching_pids(OLLAMA_SIGNATURE, snapshot) == [300, 900]
    assert find_matching_pids(MLX_SIGNATURE, snapshot) == [500]


def test_resolve_port_prefers_recorded_port():
    def inspector(pid):
        raise AssertionError("socket inspection must not run")

    assert resolve_port(8080, 1234, inspector=inspector) == 8080


def test_resolve_port_returns_first_listening_port():
    assert resolve_port(0, 1234, inspector=lambda pid: [8081, 9000]) == 8081


def test_resolve_port_without_listening_socket_fails():
    with pytest.raises(PortResolutionError) as exc_info:
        resolve_port(0, 1234, inspector=lambda pid: [])
    assert exc_info.value.details["pid"] == 1234


def test_resolve_port_maps_inspection_failures():
    def denied(pid):
        raise psutil.AccessDenied(pid=pid)

    with pytest.raises(PortResolutionError):
        resolve_port(0, 1234, inspector=denied)
