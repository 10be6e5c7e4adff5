"""Typer CLI entrypoints for localms."""

from __future__ import annotations

from typing import Dict, List, Optional

import typer

from localms.backends.factory import build_supervisor
from localms.backends.kinds import SUPPORTED_KINDS
from localms.config import Settings, initialize_config, load_settings
from localms.discovery import is_backend_installed, list_installed_backends, list_models
from localms.kernel.debug_log import DebugLogWriter
from localms.kernel.errors import (
    ConfigError,
    DiscoveryError,
    LocalmsError,
    NotRunningError,
    error_summary,
)
from localms.repl import start_connect
from localms.ui.render import (
    render_log_summary,
    render_model_listing,
    render_notice,
    render_status_table,
)

app = typer.Typer(
    no_args_is_help=True,
    help="本地模型服务命令行 (Local model server interface)",
)


def _load_settings_or_exit() -> Settings:
    try:
        return load_settings()
    except ConfigError as exc:
        typer.echo(render_notice("error", str(exc)), err=True)
        raise typer.Exit(code=2)


def _open_debug_log(settings: Settings) -> DebugLogWriter:
    return DebugLogWriter(
        logs_dir=settings.logs_dir,
        enabled=settings.logs_enabled,
        max_file_bytes=settings.logs_max_file_bytes,
        max_files=settings.logs_max_files,
        redaction=settings.logs_redaction,
    )


def _validate_kind(kind: str) -> str:
    normalized = str(kind or "").strip().lower()
    if normalized not in SUPPORTED_KINDS:
        typer.echo(
            render_notice(
                "error",
                "不支持的模型服务：{0}".format(kind),
                "Unsupported model server: {0}. Supported: {1}".format(kind, "|".join(SUPPORTED_KINDS)),
            ),
            err=True,
        )
        raise typer.Exit(code=2)
    return normalized


@app.command("init")
def init_cmd(
    force: bool = typer.Option(
        False,
        "--force",
        help="以默认值覆盖 config.toml，保留模型 (Rewrite config.toml with defaults; models are kept)",
    ),
) -> None:
    """初始化配置 (Create ~/.localms with defaults)."""
    try:
        config_root = initialize_config(force=force)
    except ConfigError as exc:
        typer.echo(render_notice("error", str(exc)), err=True)
        raise typer.Exit(code=2)

    typer.echo(
        render_notice(
            "success",
            "配置初始化完成：{0}".format(config_root),
            "Initialized config at: {0}".format(config_root),
        )
    )


@app.command("list")
def list_cmd() -> None:
    """列出可用模型与模型服务 (List available LLMs and model servers)."""
    settings = _load_settings_or_exit()
    try:
        listing = list_models(settings.models_root, settings.ollama_models_dir)
    except DiscoveryError as exc:
        typer.echo(render_notice("error", error_summary(exc)), err=True)
        raise typer.Exit(code=1)

    installed = list_installed_backends(python=settings.python)
    typer.echo(render_model_listing(listing.models, installed, SUPPORTED_KINDS))
    if listing.ignored_dirs:
        typer.echo(
            render_notice(
                "warn",
                "已忽略未知目录：{0}".format(", ".join(listing.ignored_dirs)),
                "Ignored unknown directories under {0}".format(settings.models_root),
            )
        )


@app.command("servers")
def servers_cmd() -> None:
    """列出支持的模型服务 (List supported model servers)."""
    typer.echo("The following model servers are supported:")
    for kind in SUPPORTED_KINDS:
        typer.echo("- {0}".format(kind))


@app.command("status")
def status_cmd() -> None:
    """显示模型服务运行状态 (Show running state, pid and port)."""
    settings = _load_settings_or_exit()
    debug_log = _open_debug_log(settings)
    rows: List[Dict[str, object]] = []
    for kind in SUPPORTED_KINDS:
        row: Dict[str, object] = {"kind": kind, "installed": is_backend_installed(kind, python=settings.python)}
        supervisor = build_supervisor(kind, "", settings, event_sink=debug_log.event_sink("cli"))
        running, pid = supervisor.is_running()
        row["running"] = running
        row["pid"] = pid if running else None
        if running:
            try:
                row["port"] = supervisor.get_port()
            except LocalmsError as exc:
                row["error"] = error_summary(exc)
        rows.append(row)
    typer.echo(render_status_table(rows))
    typer.echo(render_log_summary(debug_log.summary()))


@app.command("stop")
def stop_cmd(
    server: str = typer.Argument(..., help="模型服务 (Model server kind)"),
) -> None:
    """停止正在运行的模型服务 (Kill a running model server)."""
    kind = _validate_kind(server)
    settings = _load_settings_or_exit()
    debug_log = _open_debug_log(settings)
    supervisor = build_supervisor(kind, "", settings, event_sink=debug_log.event_sink("cli"))
    try:
        supervisor.stop()
    except NotRunningError as exc:
        typer.echo(render_notice("warn", error_summary(exc)), err=True)
        raise typer.Exit(code=1)
    except LocalmsError as exc:
        typer.echo(render_notice("error", error_summary(exc)), err=True)
        raise typer.Exit(code=1)
    typer.echo(render_notice("success", "已停止：{0}".format(kind), "Stopped {0}".format(kind)))


@app.command("connect")
def connect_cmd(
    server: Optional[str] = typer.Option(None, "--server", help="模型服务 (Model server kind)"),
    model: Optional[str] = typer.Option(None, "--model", help="模型目录名 (Model directory name)"),
    temperature: Optional[float] = typer.Option(None, "--temperature", help="0.0-2.0"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help=">= 1"),
    stream: Optional[bool] = typer.Option(None, "--stream/--no-stream", help="请求流式输出 (Request streaming)"),
) -> None:
    """连接模型服务并开始对话 (Connect to a model server and LLM)."""
    if server is not None:
        server = _validate_kind(server)
    settings = _load_settings_or_exit()
    exit_code = start_connect(
        settings=settings,
        debug_log=_open_debug_log(settings),
        server=server,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        stream_flag=stream,
    )
    raise typer.Exit(code=exit_code)


def run() -> None:
    app()
