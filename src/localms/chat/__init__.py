"""Chat session protocol: conversation model, wire codecs, transport, driver."""

from localms.chat.driver import ChatDriver
from localms.chat.transport import HttpChatTransport
from localms.chat.types import ChatOptions, ChatReply, ChatSession, ConversationTurn, Transcript

__all__ = [
    "ChatDriver",
    "ChatOptions",
    "ChatReply",
    "ChatSession",
    "ConversationTurn",
    "HttpChatTransport",
    "Transcript",
]
