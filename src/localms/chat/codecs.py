"""Per-kind wire codecs mapping divergent schemas onto one conversation model."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from localms.backends.kinds import MLX_LM, OLLAMA
from localms.chat.types import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ChatReply,
    ChatSession,
    ConversationTurn,
)
from localms.kernel.errors import ResponseDecodeError

_THINK_BLOCK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)
_THINK_CLOSE = "</think>"
_THINK_OPEN = "<think>"


def strip_reasoning_markers(text: str) -> str:
    """Remove ``<think>`` blocks for display; the transcript keeps the raw text."""
    cleaned = _THINK_BLOCK_RE.sub("", text or "")
    if _THINK_CLOSE in cleaned:
        # Some templates inject the opening tag into the prompt, so only the close shows up.
        cleaned = cleaned.rsplit(_THINK_CLOSE, 1)[1]
    if _THINK_OPEN in cleaned:
        cleaned = cleaned.split(_THINK_OPEN, 1)[0]
    return cleaned.strip()


def turn_to_wire(turn: ConversationTurn) -> Dict[str, Any]:
    message: Dict[str, Any] = {"role": turn.role, "content": turn.content}
    if turn.tool_calls:
        message["tool_calls"] = copy.deepcopy(list(turn.tool_calls))
    return message


def turn_from_wire(message: Any) -> ConversationTurn:
    if not isinstance(message, dict):
        raise ResponseDecodeError("message is not an object: {0!r}".format(message))
    role = str(message.get("role") or ROLE_ASSISTANT)
    content = message.get("content")
    raw_calls = message.get("tool_calls")
    tool_calls = None
    if isinstance(raw_calls, list) and raw_calls:
        tool_calls = tuple(copy.deepcopy(call) for call in raw_calls if isinstance(call, dict)) or None
    try:
        return ConversationTurn(role=role, content=str(content or ""), tool_calls=tool_calls)
    except ValueError as exc:
        raise ResponseDecodeError(str(exc)) from exc


def _wire_messages(session: ChatSession, pending: Sequence[ConversationTurn]) -> List[Dict[str, Any]]:
    turns: List[ConversationTurn] = []
    if session.system_prompt:
        turns.append(ConversationTurn(role=ROLE_SYSTEM, content=session.system_prompt))
    turns.extend(session.transcript.turns)
    turns.extend(pending)
    return [turn_to_wire(turn) for turn in turns]


def _int_or_zero(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def encode_openai_request(session: ChatSession, pending: Sequence[ConversationTurn]) -> Dict[str, Any]:
    return {
        "messages": _wire_messages(session, pending),
        "temperature": session.options.temperature,
        "max_tokens": session.options.max_tokens,
        "stream": False,
    }


def decode_openai_response(payload: Dict[str, Any]) -> ChatReply:
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise ResponseDecodeError("response has no choices")
    choice = choices[0]
    usage = payload.get("usage") if isinstance(payload.get("usage"), dict) else {}
    return ChatReply(
        turn=turn_from_wire(choice.get("message")),
        usage={
            "prompt_tokens": _int_or_zero(usage.get("prompt_tokens")),
            "completion_tokens": _int_or_zero(usage.get("completion_tokens")),
            "total_tokens": _int_or_zero(usage.get("total_tokens")),
        },
        finish_reason=str(choice.get("finish_reason") or ""),
    )


def encode_ollama_request(session: ChatSession, pending: Sequence[ConversationTurn]) -> Dict[str, Any]:
    return {
        "model": session.model,
        "messages": _wire_messages(session, pending),
        "stream": False,
        "options": {
            "temperature": session.options.temperature,
            "num_predict": session.options.max_tokens,
        },
    }


def decode_ollama_response(payload: Dict[str, Any]) -> ChatReply:
    if "message" not in payload:
        raise ResponseDecodeError("response has no message")
    prompt_tokens = _int_or_zero(payload.get("prompt_eval_count"))
    completion_tokens = _int_or_zero(payload.get("eval_count"))
    return ChatReply(
        turn=turn_from_wire(payload.get("message")),
        usage={
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
        finish_reason=str(payload.get("done_reason") or ("stop" if payload.get("done") else "")),
    )


@dataclass(frozen=True)
class WireCodec:
    encode: Callable[[ChatSession, Sequence[ConversationTurn]], Dict[str, Any]]
    decode: Callable[[Dict[str, Any]], ChatReply]


CODECS: Dict[str, WireCodec] = {
    MLX_LM: WireCodec(
        encode=encode_openai_request,
        decode=decode_openai_response,
    ),
    OLLAMA: WireCodec(
        encode=encode_ollama_request,
        decode=decode_ollama_response,
    ),
}


def codec_for(kind: str) -> WireCodec:
    codec: Optional[WireCodec] = CODECS.get(kind)
    if codec is None:
        raise ValueError("no wire codec for backend kind: {0}".format(kind))
    return codec
