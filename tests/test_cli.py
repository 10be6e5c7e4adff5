from __future__ import annotations

import httpx
from typer.testing import CliRunner

import localms.cli
from localms.backends.processes import ProcessInfo


def test_servers_lists_supported_kinds(isolated_home):
    result = CliRunner().invoke(localms.cli.app, ["servers"])

    assert result.exit_code == 0
    assert "The following model servers are supported:" in result.output
    assert "- ollama" in result.output
    assert "- mlx_lm" in result.output


def test_init_creates_config_root(isolated_home):
    result = CliRunner().invoke(localms.cli.app, ["init"])

    assert result.exit_code == 0
    assert (isolated_home / ".localms" / "config.toml").is_file()
    assert (isolated_home / ".localms" / "models" / "mlx_lm").is_dir()


def test_list_with_no_models_is_not_an_error(monkeypatch, isolated_home):
    monkeypatch.setattr("localms.cli.list_installed_backends", lambda python="python3": [])

    result = CliRunner().invoke(localms.cli.app, ["list"])

    assert result.exit_code == 0
    assert "No model directories found" in result.output
    assert "No model servers installed" in result.output


def test_list_shows_models_and_ignored_dirs(monkeypatch, isolated_home):
    models_root = isolated_home / ".localms" / "models"
    (models_root / "ollama" / "llama3").mkdir(parents=True)
    (models_root / "vllm").mkdir(parents=True)
    monkeypatch.setattr("localms.cli.list_installed_backends", lambda python="python3": ["ollama"])

    result = CliRunner().invoke(localms.cli.app, ["list"])

    assert result.exit_code == 0
    assert "  - llama3" in result.output
    assert "Installed model servers" in result.output
    assert "vllm" in result.output


def test_list_fails_when_models_root_is_unreadable(monkeypatch, isolated_home):
    config_root = isolated_home / ".localms"
    config_root.mkdir(parents=True)
    (config_root / "models").write_text("not a directory", encoding="utf-8")

    result = CliRunner().invoke(localms.cli.app, ["list"])

    assert result.exit_code == 1


def test_invalid_config_exits_with_usage_code(isolated_home):
    config_root = isolated_home / ".localms"
    config_root.mkdir(parents=True)
    (config_root / "config.toml").write_text("[chat", encoding="utf-8")

    result = CliRunner().invoke(localms.cli.app, ["list"])

    assert result.exit_code == 2


def test_stop_rejects_unknown_server(isolated_home):
    result = CliRunner().invoke(localms.cli.app, ["stop", "vllm"])

    assert result.exit_code == 2
    assert "Unsupported model server: vllm" in result.output


def test_stop_when_not_running_fails(isolated_home, process_world):
    result = CliRunner().invoke(localms.cli.app, ["stop", "ollama"])

    assert result.exit_code == 1
    assert "ollama is not running" in result.output
    assert process_world.killed == []


def test_stop_kills_external_backend(isolated_home, process_world):
    process_world.snapshot.append(ProcessInfo(pid=77, name="ollama", cmdline=("ollama", "serve")))

    result = CliRunner().invoke(localms.cli.app, ["stop", "ollama"])

    assert result.exit_code == 0
    assert process_world.killed == [77]
    assert "Stopped ollama" in result.output


def test_status_reports_pid_and_port(monkeypatch, isolated_home, process_world):
    def refuse(url, timeout):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("localms.backends.probe.httpx.get", refuse)
    monkeypatch.setattr("localms.cli.is_backend_installed", lambda kind, python="python3": kind == "ollama")
    process_world.snapshot.append(ProcessInfo(pid=77, name="ollama", cmdline=("ollama", "serve")))
    process_world.listening[77] = [11434]

    result = CliRunner().invoke(localms.cli.app, ["status"])

    assert result.exit_code == 0
    assert "ollama installed=True running=True pid=77 port=11434" in result.output
    assert "mlx_lm installed=False running=False pid=- port=-" in result.output
    assert "Debug log)" in result.output
    assert "events.jsonl" in result.output


def test_connect_without_installed_backends_fails(monkeypatch, isolated_home):
    monkeypatch.setattr("localms.repl.list_installed_backends", lambda python="python3": [])

    result = CliRunner().invoke(localms.cli.app, ["connect"])

    assert result.exit_code == 1
    assert "No model servers installed" in result.output


def test_connect_rejects_unknown_server(isolated_home):
    result = CliRunner().invoke(localms.cli.app, ["connect", "--server", "vllm"])

    assert result.exit_code == 2


def test_init_force_keeps_downloaded_models(isolated_home):
    runner = CliRunner()
    assert runner.invoke(localms.cli.app, ["init"]).exit_code == 0
    weights = isolated_home / ".localms" / "models" / "mlx_lm" / "qwen" / "model.safetensors"
    weights.parent.mkdir()
    weights.write_bytes(b"weights")

    result = runner.invoke(localms.cli.app, ["init", "--force"])

    assert result.exit_code == 0
    assert weights.read_bytes() == b"weights"
