"""Channel adapters that turn native payloads into router input.

Each adapter returns a ``(message, Channel)`` pair ready for
:meth:`conversation_router.router.FlowRouter.handle`. Delivery back to the
channel is out of scope; only ingestion is modelled here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple

from .models import Channel

logger = logging.getLogger(__name__)

Transcriber = Callable[[bytes], Awaitable[str]]
RouterInput = Tuple[str, Channel]

STUB_TRANSCRIPT = "This is a transcribed voice message."


@dataclass(slots=True)
class EmailMessage:
    sender: str
    recipient: str
    subject: str
    body: str


@dataclass(slots=True)
class TwilioMessage:
    """Inbound WhatsApp message as delivered by a Twilio webhook."""

    sender: str
    body: str


def normalize_email(message: EmailMessage) -> RouterInput:
    """Use the body as the message, falling back to the subject line."""

    text = message.body.strip() or message.subject.strip()
    logger.info("Email from %s normalized (%d chars)", message.sender, len(text))
    return text, Channel.EMAIL


def normalize_whatsapp(message: TwilioMessage) -> RouterInput:
    logger.info("WhatsApp message from %s normalized", message.sender)
    return message.body.strip(), Channel.WHATSAPP


async def normalize_voice(audio: bytes, transcriber: Transcriber) -> RouterInput:
    """Transcribe ``audio`` with the injected transcriber."""

    if not audio:
        raise ValueError("Voice message contains no audio.")
    text = await transcriber(audio)
    logger.info("Voice message transcribed (%d bytes audio)", len(audio))
    return text.strip(), Channel.VOICE


async def stub_transcriber(audio: bytes) -> str:
    """Stand-in transcriber that ignores the audio content."""

    return STUB_TRANSCRIPT
