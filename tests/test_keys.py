"""
Tests for cache key construction and topic detection.
"""

import json

import pytest

from companion.chat.context import TopicDetector
from companion.chat.keys import build_cache_key


BASE = dict(
    topic="FOOD",
    persona="TSUNDERE",
    mood="HAPPY",
    deeptalk=False,
    sulking=False,
    image_context=None,
)


class TestBuildCacheKey:

    def test_identical_inputs_give_identical_keys(self):
        assert build_cache_key("halo", **BASE) == build_cache_key("halo", **dict(BASE))

    @pytest.mark.parametrize("field,value", [
        ("topic", "MUSIC"),
        ("persona", "DEREDERE"),
        ("mood", "SAD"),
        ("deeptalk", True),
        ("sulking", True),
        ("image_context", "a cat on a sofa"),
    ])
    def test_any_differing_attribute_changes_key(self, field, value):
        changed = {**BASE, field: value}
        assert build_cache_key("halo", **changed) != build_cache_key("halo", **BASE)

    def test_prompt_changes_key(self):
        assert build_cache_key("halo", **BASE) != build_cache_key("hai", **BASE)

    def test_missing_topic_and_image_use_placeholders(self):
        key = json.loads(build_cache_key("halo", **{**BASE, "topic": None}))
        assert key["topic"] == "no_topic"
        assert key["image_context"] == "no_image"

    def test_non_ascii_kept_readable(self):
        assert "☕" in build_cache_key("kopi ☕", **BASE)


class TestTopicDetector:

    @pytest.fixture
    def detector(self):
        return TopicDetector()

    @pytest.mark.parametrize("text,topic", [
        ("Aku LAPAR banget", "FOOD"),
        ("nonton film yuk", "MOVIE"),
        ("lagu favoritmu apa?", "MUSIC"),
        ("mau liburan ke pantai", "TRAVEL"),
        ("halo!", "GENERAL_CHAT"),
    ])
    def test_detects_topic(self, detector, text, topic):
        assert detector.detect(text) == topic

    def test_first_topic_in_order_wins(self, detector):
        # "makan" (FOOD) and "film" (MOVIE) both match
        assert detector.detect("makan sambil nonton film") == "FOOD"

    @pytest.mark.parametrize("text", ["", "xyz qwerty"])
    def test_no_topic(self, detector, text):
        assert detector.detect(text) is None

    def test_custom_keywords(self):
        detector = TopicDetector({"WORK": ["Deadline", "meeting"]})
        assert detector.detect("deadline besok") == "WORK"
        assert detector.detect("lapar") is None
