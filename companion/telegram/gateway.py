"""
Telegram Gateway Module

Registers the private-message handler, dispatches the small command set,
and sends responder replies back to the chat.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import Awaitable, Callable, Optional, Union

from telethon import events

from companion.chat.responder import ChatResponder
from companion.telegram.client import TelegramSession

logger = logging.getLogger(__name__)

_ON = {"on", "1", "true", "ya", "yes"}
_OFF = {"off", "0", "false", "tidak", "no"}

ImageDescriber = Callable[[object], Union[Optional[str], Awaitable[Optional[str]]]]


def describe_media(message) -> Optional[str]:
    """
    Short text descriptor for an image attached to a Telegram message.

    Returns None when the message carries no photo or image document.
    """
    file = message.file
    mime_type = getattr(file, "mime_type", None) or ""
    if message.photo:
        kind = "photo"
    elif message.document and mime_type.startswith("image/"):
        kind = "image"
    else:
        return None

    details = [d for d in (mime_type, getattr(file, "name", None)) if d]
    return f"{kind}: {', '.join(details)}" if details else kind


class Gateway:
    """
    Telegram event gateway.

    Listens for incoming private messages and routes them through
    the chat responder.
    """

    def __init__(
        self,
        session: TelegramSession,
        responder: ChatResponder,
        allowed_chat_ids: Optional[list[int]] = None,
        image_describer: Optional[ImageDescriber] = None,
    ):
        self.session = session
        self.responder = responder
        self.allowed_chat_ids: set[int] = set(allowed_chat_ids or [])
        # May be sync or async, e.g. a vision model call
        self.image_describer: ImageDescriber = image_describer or describe_media

    def is_allowed(self, chat_id: int) -> bool:
        return not self.allowed_chat_ids or chat_id in self.allowed_chat_ids

    async def describe_image(self, message) -> Optional[str]:
        """Run the image describer on a message. None when it has no image."""
        description = self.image_describer(message)
        if inspect.isawaitable(description):
            description = await description
        return description or None

    async def handle_text(
        self,
        chat_id: int,
        text: str,
        image_context: Optional[str] = None,
    ) -> Optional[str]:
        """Return the reply for a message, or None when nothing should be sent."""
        text = text.strip()
        if not text:
            return None
        if text.startswith("/") and image_context is None:
            return self.handle_command(text)
        return await self.responder.reply(chat_id, text, image_context=image_context)

    async def handle_message(self, chat_id: int, message) -> Optional[str]:
        """Reply to a Telegram message. Images need a caption to be answered."""
        if not message.text:
            return None
        image_context = None
        if message.media is not None:
            image_context = await self.describe_image(message)
        return await self.handle_text(chat_id, message.text, image_context=image_context)

    def handle_command(self, text: str) -> str:
        """Apply a state command and return a confirmation."""
        command, _, arg = text.partition(" ")
        command = command.split("@", 1)[0].lower()
        arg = arg.strip()
        state = self.responder.state

        if command == "/start":
            return f"Hai, {self.responder.prompts.user_name}! {self.responder.prompts.bot_name} di sini."

        if command == "/persona" and arg:
            state.set_persona(arg)
            return f"Kepribadian: {state.persona}"

        if command == "/mood" and arg:
            state.set_mood(arg)
            return f"Mood: {state.mood}"

        if command in ("/deeptalk", "/sulk"):
            flag = "deeptalk" if command == "/deeptalk" else "sulking"
            if arg.lower() in _ON:
                setattr(state, flag, True)
            elif arg.lower() in _OFF:
                setattr(state, flag, False)
            else:
                return f"Pakai: {command} on|off"
            return f"{flag}: {'on' if getattr(state, flag) else 'off'}"

        if command == "/status":
            return json.dumps(
                {"state": state.to_dict(), **self.responder.gate.stats()},
                ensure_ascii=False,
                indent=2,
            )

        return "Perintah tidak dikenal. Coba /persona, /mood, /deeptalk, /sulk, /status."

    async def start(self) -> None:
        """Register event handlers and start listening."""
        client = self.session.client

        @client.on(events.NewMessage(incoming=True, func=lambda e: e.is_private))
        async def on_new_message(event: events.NewMessage.Event):
            """Handle every incoming private message."""
            message = event.message
            chat_id = event.chat_id

            if not self.is_allowed(chat_id):
                logger.info(f"Ignoring message from chat {chat_id} (not allowed)")
                return

            try:
                reply = await self.handle_message(chat_id, message)
                if reply:
                    await event.respond(reply)
            except Exception as e:
                logger.error(
                    f"Reply error for msg {message.id} in chat {chat_id}: {e}",
                    exc_info=True,
                )

        logger.info("Gateway started — listening for private messages.")

    async def run_until_disconnected(self) -> None:
        """Block until the Telegram client disconnects."""
        await self.session.client.run_until_disconnected()
