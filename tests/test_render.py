from __future__ import annotations

import io

from localms.ui.render import render_assistant_panel, render_info_box, render_log_summary


def test_assistant_panel_shows_bracketed_text_verbatim_on_tty():
    out = io.StringIO()

    render_assistant_panel("Sure. [/INST] done [bold]x[/bold]", "m", out, is_tty=True)

    text = out.getvalue()
    assert "[/INST]" in text
    assert "[bold]x[/bold]" in text


def test_info_box_shows_bracketed_model_name_on_tty():
    out = io.StringIO()

    render_info_box("Chat [v2]", ["Chat Session: llama[/q4] @ ollama"], out, is_tty=True)

    assert "llama[/q4]" in out.getvalue()


def test_assistant_panel_plain_box_off_tty():
    out = io.StringIO()

    render_assistant_panel("hello", "qwen", out, is_tty=False)

    lines = out.getvalue().splitlines()
    assert lines[0].startswith("+-")
    assert "qwen" in lines[0]
    assert lines[1].startswith("| hello")


def test_log_summary_line():
    assert "Debug log disabled" in render_log_summary({"enabled": False})
    line = render_log_summary(
        {"enabled": True, "path": "/tmp/events.jsonl", "size_bytes": 42, "rolled_files": 1, "write_errors": 0}
    )
    assert "/tmp/events.jsonl size=42B rolled=1 write_errors=0" in line
