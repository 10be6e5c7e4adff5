"""Interactive request/response loop over one chat session."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Sequence

from localms.backends.kinds import get_spec
from localms.chat.codecs import codec_for, strip_reasoning_markers
from localms.chat.transport import ChatTransport
from localms.chat.types import ROLE_USER, ChatReply, ChatSession, ConversationTurn
from localms.kernel.errors import LocalmsError
from localms.kernel.types import EventSink

EXIT_COMMANDS = ("/exit", "/quit")

ReadLine = Callable[[], Optional[str]]
RenderReply = Callable[[str, ChatReply], None]


class ChatDriver:
    """Drive one session until an exit command, EOF or a fatal error.

    ``read_line`` returns None at end of input. ``render`` receives the
    display text (reasoning markers stripped) plus the full reply.
    """

    def __init__(
        self,
        *,
        read_line: ReadLine,
        render: RenderReply,
        event_sink: Optional[EventSink] = None,
        exit_commands: Sequence[str] = EXIT_COMMANDS,
    ) -> None:
        self._read_line = read_line
        self._render = render
        self._event_sink = event_sink
        self._exit_commands = tuple(exit_commands)

    def run(self, session: ChatSession, transport: ChatTransport) -> None:
        codec = codec_for(session.kind)
        chat_path = get_spec(session.kind).chat_path

        while True:
            line = self._read_line()
            if line is None:
                self._emit("chat.session.eof", {"turns": len(session.transcript)})
                return
            text = line.strip()
            if text in self._exit_commands:
                self._emit("chat.session.exit", {"turns": len(session.transcript)})
                return
            if not text:
                continue

            user_turn = ConversationTurn(role=ROLE_USER, content=text)
            payload = codec.encode(session, [user_turn])
            try:
                body = transport.post_json(chat_path, payload)
                reply = codec.decode(body)
            except LocalmsError as exc:
                self._emit(
                    "chat.turn.failed",
                    {"kind": session.kind, "error": str(exc), **exc.details},
                )
                raise

            session.transcript.append(user_turn)
            session.transcript.append(reply.turn)
            self._emit(
                "chat.turn.completed",
                {
                    "kind": session.kind,
                    "model": session.model,
                    "turns": len(session.transcript),
                    "finish_reason": reply.finish_reason,
                    "usage": dict(reply.usage),
                },
            )
            self._render(strip_reasoning_markers(reply.turn.content), reply)

    def _emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        if self._event_sink is None:
            return
        self._event_sink(event_type, payload)
