"""Installation checks for backend software."""

from __future__ import annotations

import shutil
import subprocess


def is_binary_available(name: str) -> bool:
    return shutil.which(name) is not None


def is_python_module_available(python: str, module: str, timeout_sec: float = 15.0) -> bool:
    """Ask ``python`` (the interpreter that will run the backend) to import ``module``."""
    try:
        completed = subprocess.run(
            [python, "-c", "import {0}".format(module)],
            capture_output=True,
            text=True,
            timeout=timeout_sec,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return completed.returncode == 0
