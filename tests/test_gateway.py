"""
Tests for Gateway message/command dispatch and the maintenance loop.
"""

import asyncio
import json
from types import SimpleNamespace

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from companion.chat.state import ChatState
from companion.gate.gate import ResponseGate
from companion.main import cache_maintenance_loop
from companion.telegram.gateway import Gateway, describe_media


@pytest.fixture
def responder():
    r = MagicMock()
    r.reply = AsyncMock(return_value="balasan")
    r.state = ChatState()
    r.gate = ResponseGate()
    r.prompts.bot_name = "Lumina"
    r.prompts.user_name = "Sayang"
    return r


@pytest.fixture
def gateway(responder):
    return Gateway(session=MagicMock(), responder=responder, allowed_chat_ids=[7])


class TestGateway:

    @pytest.mark.asyncio
    async def test_text_goes_to_responder(self, gateway, responder):
        assert await gateway.handle_text(7, "  halo  ") == "balasan"
        responder.reply.assert_awaited_once_with(7, "halo", image_context=None)

    @pytest.mark.asyncio
    async def test_blank_text_ignored(self, gateway, responder):
        assert await gateway.handle_text(7, "   ") is None
        responder.reply.assert_not_awaited()

    def test_allowed_chats(self, gateway):
        assert gateway.is_allowed(7)
        assert not gateway.is_allowed(8)
        assert Gateway(MagicMock(), MagicMock()).is_allowed(8)

    @pytest.mark.asyncio
    async def test_commands_update_state(self, gateway, responder):
        await gateway.handle_text(7, "/persona deredere")
        await gateway.handle_text(7, "/mood@LuminaBot happy")
        await gateway.handle_text(7, "/deeptalk on")
        await gateway.handle_text(7, "/sulk ya")

        assert responder.state.to_dict() == {
            "persona": "DEREDERE",
            "mood": "HAPPY",
            "deeptalk": True,
            "sulking": True,
        }
        responder.reply.assert_not_awaited()

    def test_flag_command_requires_on_off(self, gateway, responder):
        assert gateway.handle_command("/deeptalk maybe") == "Pakai: /deeptalk on|off"
        assert responder.state.deeptalk is False

    def test_status_reports_gate_stats(self, gateway):
        status = json.loads(gateway.handle_command("/status"))
        assert status["cache"]["max_entries"] == 100
        assert status["limiter"]["max_requests"] == 3
        assert status["state"]["persona"] == "TSUNDERE"

    def test_unknown_command(self, gateway):
        assert "tidak dikenal" in gateway.handle_command("/foo")


class TestCacheMaintenanceLoop:

    @pytest.mark.asyncio
    async def test_clears_cache_on_each_interval(self):
        gate = MagicMock()
        stop_event = asyncio.Event()
        calls = 0

        async def fake_wait_for(awaitable, timeout):
            nonlocal calls
            awaitable.close()
            calls += 1
            if calls >= 3:
                stop_event.set()
            raise asyncio.TimeoutError

        with patch("companion.main.asyncio.wait_for", new=fake_wait_for):
            await cache_maintenance_loop(gate, 30, stop_event)

        assert gate.clear_cache.call_count == 3

    @pytest.mark.asyncio
    async def test_stops_without_clearing(self):
        gate = MagicMock()
        stop_event = asyncio.Event()
        stop_event.set()

        await cache_maintenance_loop(gate, 30, stop_event)

        gate.clear_cache.assert_not_called()


def _message(text="", photo=None, document=None, mime_type=None, name=None):
    has_media = photo is not None or document is not None
    file = SimpleNamespace(mime_type=mime_type, name=name) if has_media else None
    return SimpleNamespace(
        id=1,
        text=text,
        photo=photo,
        document=document,
        media=object() if has_media else None,
        file=file,
    )


class TestImageMessages:

    def test_describe_photo(self):
        msg = _message("lihat", photo=object(), mime_type="image/jpeg")
        assert describe_media(msg) == "photo: image/jpeg"

    def test_describe_image_document_with_name(self):
        msg = _message("ini", document=object(), mime_type="image/png", name="kucing.png")
        assert describe_media(msg) == "image: image/png, kucing.png"

    def test_non_image_document_has_no_descriptor(self):
        msg = _message("ini", document=object(), mime_type="application/pdf", name="cv.pdf")
        assert describe_media(msg) is None

    def test_plain_text_has_no_descriptor(self):
        assert describe_media(_message("halo")) is None

    @pytest.mark.asyncio
    async def test_captioned_photo_passes_image_context(self, gateway, responder):
        msg = _message("lucu gak?", photo=object(), mime_type="image/jpeg")

        assert await gateway.handle_message(7, msg) == "balasan"
        responder.reply.assert_awaited_once_with(
            7, "lucu gak?", image_context="photo: image/jpeg"
        )

    @pytest.mark.asyncio
    async def test_photo_without_caption_ignored(self, gateway, responder):
        msg = _message("", photo=object(), mime_type="image/jpeg")

        assert await gateway.handle_message(7, msg) is None
        responder.reply.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_text_message_has_no_image_context(self, gateway, responder):
        await gateway.handle_message(7, _message("halo"))
        responder.reply.assert_awaited_once_with(7, "halo", image_context=None)

    @pytest.mark.asyncio
    async def test_custom_async_describer(self, responder):
        describer = AsyncMock(return_value="kucing oranye tidur di sofa")
        gw = Gateway(MagicMock(), responder, image_describer=describer)
        msg = _message("ini siapa?", photo=object(), mime_type="image/jpeg")

        await gw.handle_message(7, msg)

        describer.assert_awaited_once_with(msg)
        responder.reply.assert_awaited_once_with(
            7, "ini siapa?", image_context="kucing oranye tidur di sofa"
        )

    @pytest.mark.asyncio
    async def test_slash_caption_on_photo_is_not_a_command(self, gateway, responder):
        msg = _message("/persona", photo=object(), mime_type="image/jpeg")

        await gateway.handle_message(7, msg)

        responder.reply.assert_awaited_once()
        assert responder.state.persona == "TSUNDERE"
