"""Interactive connect flow: pick a server and model, start it, chat, release it."""

from __future__ import annotations

import sys
from typing import Callable, Dict, List, Optional, Sequence, TextIO, Tuple

from localms.backends.base import managed_backend
from localms.backends.factory import build_supervisor
from localms.backends.kinds import SUPPORTED_KINDS
from localms.chat.driver import ChatDriver
from localms.chat.transport import HttpChatTransport
from localms.chat.types import MAX_TEMPERATURE, ChatOptions, ChatReply, ChatSession
from localms.config import Settings
from localms.discovery import list_installed_backends, list_models
from localms.kernel.debug_log import DebugLogWriter
from localms.kernel.errors import DiscoveryError, LocalmsError, error_summary
from localms.ui.render import (
    bilingual_text,
    format_usage_line,
    render_assistant_panel,
    render_dim,
    render_info_box,
    render_notice,
)

PromptReader = Callable[[str], Optional[str]]


def start_connect(
    *,
    settings: Settings,
    debug_log: DebugLogWriter,
    server: Optional[str] = None,
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    stream_flag: Optional[bool] = None,
    prompt_reader: Optional[PromptReader] = None,
    stream: Optional[TextIO] = None,
    err_stream: Optional[TextIO] = None,
) -> int:
    stream = stream or sys.stdout
    err_stream = err_stream or sys.stderr
    reader = prompt_reader or _stdin_prompt_reader(stream)

    installed = list_installed_backends(python=settings.python)
    if not installed:
        _echo(
            err_stream,
            render_notice(
                "error",
                "未检测到已安装的模型服务。",
                "No model servers installed. Supported: {0}".format(", ".join(SUPPORTED_KINDS)),
            ),
        )
        return 1

    kind, code = _resolve_choice(
        requested=server,
        options=installed,
        label=bilingual_text("选择模型服务", "Choose a model server"),
        reader=reader,
        stream=stream,
        err_stream=err_stream,
    )
    if kind is None:
        return code

    try:
        listing = list_models(settings.models_root, settings.ollama_models_dir)
    except DiscoveryError as exc:
        _echo(err_stream, render_notice("error", error_summary(exc)))
        return 1
    models = listing.models.get(kind) or []
    if not models:
        _echo(
            err_stream,
            render_notice(
                "error",
                "模型服务 {0} 下没有可用模型：{1}".format(kind, settings.models_root / kind),
                "No LLMs available for model server: {0}".format(kind),
            ),
        )
        return 1

    selected_model, code = _resolve_choice(
        requested=model,
        options=models,
        label=bilingual_text("选择模型", "Choose an LLM"),
        reader=reader,
        stream=stream,
        err_stream=err_stream,
    )
    if selected_model is None:
        return code

    if temperature is None and max_tokens is None and stream_flag is None:
        options = prompt_chat_options(settings, reader=reader, stream=stream)
    else:
        try:
            options = ChatOptions(
                temperature=settings.chat.temperature if temperature is None else temperature,
                max_tokens=settings.chat.max_tokens if max_tokens is None else max_tokens,
                stream=settings.chat.stream if stream_flag is None else stream_flag,
            )
        except ValueError as exc:
            _echo(err_stream, render_notice("error", str(exc)))
            return 2

    supervisor = build_supervisor(
        kind,
        selected_model,
        settings,
        event_sink=debug_log.event_sink("supervisor"),
    )
    if not supervisor.is_available():
        _echo(
            err_stream,
            render_notice(
                "error",
                "模型服务不可用：{0}".format(kind),
                "Model server unavailable: {0}".format(kind),
            ),
        )
        return 1

    running, pid = supervisor.is_running()
    if running:
        render_dim("{0} already running (pid={1}), reusing it".format(kind, pid), stream)
    else:
        render_dim("Starting {0}; logs: {1}".format(kind, supervisor.log_path), stream)

    session = ChatSession(
        kind=kind,
        model=selected_model,
        options=options,
        system_prompt=settings.chat.system_prompt,
    )

    def render_reply(text: str, reply: ChatReply) -> None:
        render_assistant_panel(text, selected_model, stream)
        if reply.usage:
            render_dim(format_usage_line(reply.usage), stream)

    driver = ChatDriver(
        read_line=lambda: reader(bilingual_text("你", "You") + ": "),
        render=render_reply,
        event_sink=debug_log.event_sink("driver"),
    )

    try:
        with managed_backend(supervisor) as port:
            render_dim("Server is listening on port {0}".format(port), stream)
            _render_session_header(session, stream)
            with HttpChatTransport(
                supervisor.host,
                port,
                timeout_sec=settings.chat.request_timeout_sec,
            ) as transport:
                driver.run(session, transport)
    except LocalmsError as exc:
        _echo(err_stream, render_notice("error", error_summary(exc)))
        return 1
    except KeyboardInterrupt:
        _echo(err_stream, "")
        _echo(err_stream, render_notice("warn", "已中断。", "Interrupted."))
        return 130

    render_dim(bilingual_text("会话结束，再见！", "Exiting chat. Goodbye!"), stream)
    return 0


def prompt_chat_options(settings: Settings, *, reader: PromptReader, stream: TextIO) -> ChatOptions:
    """Ask for temperature, max tokens and streaming; invalid input falls back to config defaults."""
    defaults = settings.chat

    raw = (reader("Temperature (0.0-{0}, default {1}): ".format(MAX_TEMPERATURE, defaults.temperature)) or "").strip()
    temperature = defaults.temperature
    if raw:
        try:
            temperature = float(raw)
        except ValueError:
            temperature = -1.0
        if not 0.0 <= temperature <= MAX_TEMPERATURE:
            _echo(stream, render_notice("warn", "温度无效，使用默认值。", "Invalid temperature, using default {0}".format(defaults.temperature)))
            temperature = defaults.temperature

    raw = (reader("Max Tokens (default {0}): ".format(defaults.max_tokens)) or "").strip()
    max_tokens = defaults.max_tokens
    if raw:
        try:
            max_tokens = int(raw)
        except ValueError:
            max_tokens = 0
        if max_tokens < 1:
            _echo(stream, render_notice("warn", "最大 token 数无效，使用默认值。", "Invalid max tokens, using default {0}".format(defaults.max_tokens)))
            max_tokens = defaults.max_tokens

    default_stream = "y" if defaults.stream else "n"
    raw = (reader("Enable Streaming? (y/n, default {0}): ".format(default_stream)) or "").strip().lower()
    stream_enabled = defaults.stream if not raw else raw in {"y", "yes"}

    return ChatOptions(temperature=temperature, max_tokens=max_tokens, stream=stream_enabled)


def _resolve_choice(
    *,
    requested: Optional[str],
    options: Sequence[str],
    label: str,
    reader: PromptReader,
    stream: TextIO,
    err_stream: TextIO,
) -> Tuple[Optional[str], int]:
    if requested is not None:
        normalized = requested.strip()
        if normalized in options:
            return normalized, 0
        _echo(
            err_stream,
            render_notice(
                "error",
                "无效选择：{0}，可选：{1}".format(requested, "|".join(options)),
                "Invalid choice: {0}. Available: {1}".format(requested, "|".join(options)),
            ),
        )
        return None, 2

    numbered: Dict[int, str] = {}
    _echo(stream, label + " " + bilingual_text("（输入编号）", "type just the number") + ":")
    for idx, option in enumerate(options):
        numbered[idx] = option
        _echo(stream, "{0}. {1}".format(idx, option))

    raw = (reader("> ") or "").strip()
    try:
        choice = int(raw)
    except ValueError:
        _echo(err_stream, render_notice("error", "请输入编号。", "Please input just the number and press enter"))
        return None, 2
    selected = numbered.get(choice)
    if selected is None:
        _echo(err_stream, render_notice("error", "无效编号：{0}".format(choice), "The following input number is not valid: {0}".format(choice)))
        return None, 2
    return selected, 0


def _render_session_header(session: ChatSession, stream: TextIO) -> None:
    rows: List[str] = [
        "Chat Session: {0} @ {1}".format(session.model, session.kind),
        "Temperature: {0:.2f}".format(session.options.temperature),
        "Max Tokens: {0}".format(session.options.max_tokens),
        "Streaming: {0}".format(session.options.stream),
    ]
    render_info_box(bilingual_text("聊天会话", "Chat"), rows, stream)
    render_dim("Type '/exit' to quit the chat", stream)


def _stdin_prompt_reader(stream: TextIO) -> PromptReader:
    def read(prompt: str) -> Optional[str]:
        stream.write(prompt)
        stream.flush()
        line = sys.stdin.readline()
        if line == "":
            return None
        return line.rstrip("\n")

    return read


def _echo(stream: TextIO, text: str) -> None:
    stream.write(text + "\n")
    stream.flush()
