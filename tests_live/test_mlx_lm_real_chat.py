from __future__ import annotations

import os
from pathlib import Path

import pytest

from localms.backends.base import BackendHandle, managed_backend
from localms.backends.mlx_lm import MlxLMSupervisor
from localms.chat.driver import ChatDriver
from localms.chat.transport import HttpChatTransport
from localms.chat.types import ChatOptions, ChatSession


def _live_enabled() -> bool:
    return str(os.getenv("LOCALMS_LIVE_MLX") or "").strip() == "1"


@pytest.mark.skipif(not _live_enabled(), reason="set LOCALMS_LIVE_MLX=1 to run live mlx_lm tests")
def test_mlx_lm_real_two_turn_chat(tmp_path: Path):
    model_dir = Path(str(os.getenv("LOCALMS_LIVE_MLX_MODEL") or "")).expanduser()
    if not model_dir.is_dir():
        pytest.skip("set LOCALMS_LIVE_MLX_MODEL to a downloaded mlx model directory")

    supervisor = MlxLMSupervisor(
        BackendHandle(kind="mlx_lm", model=model_dir.name),
        python=str(os.getenv("LOCALMS_LIVE_PYTHON") or "python3"),
        models_root=tmp_path / "models",
        logs_dir=tmp_path / "logs",
        port=18080,
    )
    (tmp_path / "models" / "mlx_lm").mkdir(parents=True)
    (tmp_path / "models" / "mlx_lm" / model_dir.name).symlink_to(model_dir, target_is_directory=True)
    if not supervisor.is_available():
        pytest.skip("mlx_lm is not importable by the configured interpreter")

    lines = iter(["Say hello in one word.", "Now say goodbye in one word.", "/exit"])
    rendered = []
    session = ChatSession(kind="mlx_lm", model=model_dir.name, options=ChatOptions(max_tokens=32))

    with managed_backend(supervisor) as port:
        assert port == 18080
        with HttpChatTransport(supervisor.host, port, timeout_sec=120.0) as transport:
            ChatDriver(read_line=lambda: next(lines), render=lambda text, reply: rendered.append(text)).run(
                session,
                transport,
            )

    assert len(session.transcript) == 4
    assert all(str(text).strip() for text in rendered)
    assert supervisor.handle.owned_pid == 0
