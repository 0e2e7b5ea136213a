"""
Tests for prompt templates and local rule-based cleanup.
"""

import pytest

from voxpaste.core.transcript_processor.prompts import (
    OPTIMIZATION_SYSTEM_PROMPT,
    Enhancement,
    PromptRequest,
    build_prompt,
    clean_text,
    get_default_enhancements,
    normalize_punctuation,
)


class TestEnhancement:
    """Tests for Enhancement model."""

    def test_roundtrip(self):
        original = {"id": "test_id", "title": "Test Enhancement", "prompt": "Fix the text"}
        enh = Enhancement.from_dict(original)
        assert enh.to_dict() == original

    def test_ignores_unknown_fields(self):
        enh = Enhancement.from_dict({"id": "a", "title": "A", "prompt": "p", "extra": 1})
        assert enh.id == "a"


class TestDefaultEnhancements:
    """Tests for default prompt presets."""

    def test_defaults_exist(self):
        defaults = get_default_enhancements()
        assert len(defaults) >= 3

    def test_defaults_have_unique_ids(self):
        ids = [enh.id for enh in get_default_enhancements()]
        assert len(ids) == len(set(ids))

    def test_defaults_cover_both_template_kinds(self):
        prompts = [enh.prompt for enh in get_default_enhancements()]
        assert any("{text}" in p for p in prompts)
        assert any("{text}" not in p for p in prompts)


class TestBuildPrompt:
    """Tests for template resolution."""

    def test_default_prompt(self):
        prompt = build_prompt("嗯今天天气不错")

        assert prompt.system_prompt == OPTIMIZATION_SYSTEM_PROMPT
        assert prompt.user_prompt.endswith("原文：嗯今天天气不错")

    def test_placeholder_template(self):
        prompt = build_prompt("hello", "Fix this: {text} please")

        assert prompt.system_prompt is None
        assert prompt.user_prompt == "Fix this: hello please"

    def test_instruction_template(self):
        prompt = build_prompt("hello", "Make it formal.")

        assert prompt.system_prompt == "Make it formal."
        assert prompt.user_prompt == "hello"

    def test_blank_template_uses_default(self):
        assert build_prompt("x", "   ").system_prompt == OPTIMIZATION_SYSTEM_PROMPT

    def test_messages(self):
        prompt = PromptRequest(system_prompt="sys", user_prompt="user")

        assert prompt.to_messages() == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "user"},
        ]
        assert prompt.to_messages(supports_system_messages=False) == [
            {"role": "user", "content": "sys\n\nuser"}
        ]

    def test_messages_without_system(self):
        prompt = PromptRequest(system_prompt=None, user_prompt="user")
        assert prompt.to_messages() == [{"role": "user", "content": "user"}]


class TestCleanText:
    """Tests for local filler and repeat removal."""

    def test_removes_standalone_light_filler(self):
        assert clean_text("嗯，今天天气不错。") == "今天天气不错"

    def test_aggressive_fillers(self):
        assert clean_text("那个，我们明天开会", aggressive=True) == "我们明天开会"
        assert clean_text("那个，我们明天开会", aggressive=False) == "那个，我们明天开会"

    def test_keeps_embedded_words(self):
        assert clean_text("这个东西很好用") == "这个东西很好用"

    def test_removes_repeated_interjections(self):
        assert clean_text("呃呃呃我觉得可以") == "我觉得可以"

    def test_collapses_character_runs(self):
        assert clean_text("好好好的") == "好的"

    def test_normalizes_punctuation(self):
        assert clean_text("今天 ，天气  不错！！！") == "今天，天气 不错"

    def test_english_filler(self):
        assert clean_text("um, I think so", aggressive=False) == "I think so"

    def test_filler_only_becomes_empty(self):
        assert clean_text("嗯，啊。") == ""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("a ， b", "a，b"),
            ("好，，，的", "好，的"),
            ("真的吗？？", "真的吗？"),
        ],
    )
    def test_normalize_punctuation(self, raw, expected):
        assert normalize_punctuation(raw) == expected
