"""Presentation helpers for localms CLI output."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence, TextIO

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.text import Text


def bilingual_text(zh: str, en: Optional[str] = None) -> str:
    if not en:
        return zh
    return "{0} ({1})".format(zh, en)


def render_notice(level: str, zh: str, en: Optional[str] = None) -> str:
    prefix_map = {
        "info": bilingual_text("提示", "Info"),
        "warn": bilingual_text("警告", "Warning"),
        "error": bilingual_text("错误", "Error"),
        "success": bilingual_text("成功", "Success"),
    }
    prefix = prefix_map.get(level, bilingual_text("提示", "Info"))
    return "{0}: {1}".format(prefix, bilingual_text(zh, en))


def _is_tty(stream: TextIO, forced: Optional[bool]) -> bool:
    if forced is not None:
        return forced
    isatty = getattr(stream, "isatty", None)
    if callable(isatty):
        try:
            return bool(isatty())
        except (OSError, ValueError):
            return False
    return False


def _plain_box(title: str, text: str, stream: TextIO) -> None:
    lines = text.splitlines() or [""]
    width = max([len(title)] + [len(line) for line in lines])

    stream.write("+-{0}-+\n".format(title.ljust(width, "-")))
    for line in lines:
        stream.write("| {0} |\n".format(line.ljust(width)))
    stream.write("+-{0}-+\n".format("-" * width))
    stream.flush()


def render_assistant_panel(
    text: str,
    model: str,
    stream: TextIO,
    is_tty: Optional[bool] = None,
) -> None:
    title = "{0} ({1})".format(bilingual_text("助手回复", "Assistant"), model) if model else bilingual_text("助手回复", "Assistant")
    normalized = text if text is not None else ""

    if _is_tty(stream, is_tty):
        console = Console(file=stream, highlight=False, soft_wrap=True)
        console.print(
            Panel(
                Text(normalized),
                title=Text(title),
                title_align="left",
                border_style="blue",
                box=box.ROUNDED,
            )
        )
        return
    _plain_box(title, normalized, stream)


def render_info_box(title: str, rows: Sequence[str], stream: TextIO, is_tty: Optional[bool] = None) -> None:
    body = "\n".join(rows)
    if _is_tty(stream, is_tty):
        console = Console(file=stream, highlight=False, soft_wrap=True)
        console.print(Panel(Text(body), title=Text(title), border_style="magenta", box=box.ROUNDED, padding=(1, 2)))
        return
    _plain_box(title, body, stream)


def render_dim(text: str, stream: TextIO, is_tty: Optional[bool] = None) -> None:
    if _is_tty(stream, is_tty):
        console = Console(file=stream, highlight=False, soft_wrap=True)
        console.print(Text(text, style="dim"))
        return
    stream.write(text + "\n")
    stream.flush()


def format_usage_line(usage: Mapping[str, int]) -> str:
    return "prompt_tokens={0} completion_tokens={1} total_tokens={2}".format(
        int(usage.get("prompt_tokens") or 0),
        int(usage.get("completion_tokens") or 0),
        int(usage.get("total_tokens") or 0),
    )


def render_model_listing(
    models: Dict[str, List[str]],
    installed: Sequence[str],
    supported: Sequence[str],
) -> str:
    lines: List[str] = []
    if any(models.values()):
        lines.append(bilingual_text("可用模型", "Available LLMs"))
        for kind in sorted(models.keys()):
            lines.append("- {0}:".format(kind))
            entries = models[kind]
            if not entries:
                lines.append("  " + bilingual_text("（无）", "none"))
            for model in entries:
                lines.append("  - {0}".format(model))
    else:
        lines.append(
            render_notice(
                "info",
                "模型目录中没有可用模型。",
                "No model directories found. Download model weights into <models_root>/<server>/<model>.",
            )
        )

    lines.append("")
    if installed:
        lines.append(bilingual_text("已安装的模型服务", "Installed model servers"))
        for kind in installed:
            lines.append("- {0}".format(kind))
    else:
        lines.append(
            render_notice(
                "info",
                "未检测到已安装的模型服务。",
                "No model servers installed. Supported: {0}".format(", ".join(supported)),
            )
        )
    return "\n".join(lines)


def render_status_table(rows: Sequence[Mapping[str, object]]) -> str:
    lines = [bilingual_text("模型服务状态", "Model Server Status")]
    for row in rows:
        lines.append(
            "{0} installed={1} running={2} pid={3} port={4}".format(
                row.get("kind", ""),
                bool(row.get("installed")),
                bool(row.get("running")),
                row.get("pid") or "-",
                row.get("port") or "-",
            )
        )
        error = row.get("error")
        if error:
            lines.append("  error={0}".format(error))
    return "\n".join(lines)


def render_log_summary(summary: Mapping[str, object]) -> str:
    if not summary.get("enabled"):
        return bilingual_text("调试日志已关闭", "Debug log disabled")
    return "{0}: {1} size={2}B rolled={3} write_errors={4}".format(
        bilingual_text("调试日志", "Debug log"),
        summary.get("path", ""),
        summary.get("size_bytes", 0),
        summary.get("rolled_files", 0),
        summary.get("write_errors", 0),
    )
