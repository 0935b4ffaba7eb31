"""
Telegram Client Module

Manages the Telethon bot client connection and session persistence.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from pathlib import Path
from typing import Optional

from telethon import TelegramClient
from telethon.tl.types import User

logger = logging.getLogger(__name__)


class TelegramSession:
    """
    Manages Telethon bot connection and session persistence.

    Usage:
        async with TelegramSession(api_id, api_hash, bot_token) as session:
            session.client.add_event_handler(...)
    """

    def __init__(
        self,
        api_id: int,
        api_hash: str,
        bot_token: str,
        session_name: str = "companion_bot",
        session_dir: Optional[Path] = None,
    ):
        self.api_id = api_id
        self.api_hash = api_hash
        self.bot_token = bot_token
        self.session_name = session_name
        self.session_dir = session_dir or Path.cwd() / "sessions"

        self.session_dir.mkdir(parents=True, exist_ok=True)
        session_path = self.session_dir / session_name

        self._client = TelegramClient(str(session_path), api_id, api_hash)
        self._connected = False
        self._me: Optional[User] = None

    @property
    def client(self) -> TelegramClient:
        """Get underlying Telethon client."""
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._connected and self._client.is_connected()

    @property
    def me(self) -> Optional[User]:
        return self._me

    async def connect(self) -> bool:
        """Connect to Telegram and log in with the bot token."""
        for attempt in range(5):
            try:
                logger.info("Connecting to Telegram as bot...")
                await self._client.start(bot_token=self.bot_token)
                self._connected = True
                self._me = await self._client.get_me()
                logger.info(f"Connected as @{self._me.username or 'no_user'}")
                return True

            except sqlite3.OperationalError as e:
                # Session file locked by another (possibly zombie) process
                if "database is locked" in str(e).lower() and attempt < 4:
                    logger.warning(f"Database is locked, retrying in 2s ({attempt+1}/5)...")
                    await self._client.disconnect()
                    await asyncio.sleep(2)
                    continue
                logger.error(f"Failed to connect (SQLite lock): {e}")
                raise
            except Exception as e:
                logger.error(f"Failed to connect: {e}")
                raise
        return False

    async def disconnect(self) -> None:
        """Disconnect from Telegram gracefully."""
        if self._client.is_connected():
            logger.info("Disconnecting from Telegram...")
            await self._client.disconnect()
            self._connected = False

    async def __aenter__(self) -> "TelegramSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()
