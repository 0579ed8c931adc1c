"""Tests for fallback turns and stream sanitising."""

import pytest

from arkham_keeper.fallback import (
    FALLBACK_CHOICES,
    OWN_ACTION_CHOICE,
    build_fallback_turn,
    sanitize_keeper_content,
)
from arkham_keeper.parser import parse_reply

SILENT = "The Keeper is silent."


@pytest.mark.parametrize("seed", [
    "",
    "   \n ",
    "The lamp flickers.",
    "NARRATION:\nHalf a reply\nCHOICES:\n1. Only one",
    '{"narration": "Cut short", "choices": ["a", "b", "c", "d", "e", "f"]}',
    "1. Not a choice\n2. Also not",
    "The wind howls.\nCHOICES:\n1. Shelter",
    "The wind howls.\nchoices: 1. Shelter\n2. Run",
    "You weigh your choices:\n1. Run\n2. Hide",
    "CHOICES:\n1. Only choices",
])
def test_fallback_always_has_five_choices(seed):
    parsed = parse_reply(build_fallback_turn(seed, SILENT))
    assert parsed.choices == [*FALLBACK_CHOICES, OWN_ACTION_CHOICE]


def test_blank_seed_uses_silent_text():
    parsed = parse_reply(build_fallback_turn("  ", SILENT))
    assert parsed.narration == SILENT


def test_seed_becomes_narration():
    parsed = parse_reply(build_fallback_turn("  The lamp flickers.\n", SILENT))
    assert parsed.narration == "The lamp flickers."


def test_structured_seed_keeps_only_narration():
    seed = "NARRATION:\nHalf a reply\nCHOICES:\n1. Only one"
    assert parse_reply(build_fallback_turn(seed, SILENT)).narration == "Half a reply"


def test_trailing_choices_block_is_cut_from_narration():
    parsed = parse_reply(build_fallback_turn("The wind howls.\nCHOICES:\n1. Shelter", SILENT))
    assert parsed.narration == "The wind howls."


def test_choices_label_without_numbered_lines_is_kept():
    seed = "You weigh your choices: run or hide."
    assert parse_reply(build_fallback_turn(seed, SILENT)).narration == seed


def test_seed_of_only_choices_uses_silent_text():
    assert parse_reply(build_fallback_turn("CHOICES:\n1. Run", SILENT)).narration == SILENT


def test_fallback_uses_legacy_layout():
    text = build_fallback_turn("Dark.", SILENT)
    assert text.startswith("NARRATION:\nDark.\n\nCHOICES:\n1. ")
    assert text.endswith(f"5. {OWN_ACTION_CHOICE}")


# ── sanitize_keeper_content ──────────────────────────────────


def test_sanitize_strips_provider_status_lines():
    text = ": OPENROUTER PROCESSING\n\nThe door opens."
    assert sanitize_keeper_content(text) == "\nThe door opens."


def test_sanitize_strips_mid_line_status_text():
    assert sanitize_keeper_content("The door opens. openrouter processing...\nRain.") == "The door opens. Rain."


def test_sanitize_keeps_narration_starting_with_processing():
    text = "Processing...\nThe machine hums."
    assert sanitize_keeper_content(text) == text


def test_sanitize_keeps_ordinary_text():
    text = "The clerk is processing your papers slowly."
    assert sanitize_keeper_content(text) == text
