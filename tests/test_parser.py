"""Tests for parse_reply: JSON dialect, legacy sections, and degraded input."""

from arkham_keeper.models import KeeperTurnParsed
from arkham_keeper.parser import parse_reply, parse_reply_detailed


# ── JSON dialect ─────────────────────────────────────────────


def test_parse_minified_json():
    raw = '{"narration":"  The door creaks.  ","choices":["Enter","Knock"]}'
    assert parse_reply(raw) == KeeperTurnParsed(narration="The door creaks.", choices=["Enter", "Knock"])


def test_parse_fenced_json():
    raw = '```json\n{"narration":"You enter.","choices":["Look around","Leave"]}\n```'
    parsed = parse_reply(raw)
    assert parsed.narration == "You enter."
    assert parsed.choices == ["Look around", "Leave"]


def test_parse_json_inside_prose():
    raw = 'Sure! Here is the turn:\n{"narration": "Rain.", "choices": ["Wait"]}\nHope that helps.'
    parsed = parse_reply(raw)
    assert parsed.narration == "Rain."
    assert parsed.choices == ["Wait"]


def test_json_choices_filtered_to_non_empty_strings():
    raw = '{"narration": "Fog.", "choices": ["Run", "", "   ", 3, null, "Hide"]}'
    assert parse_reply(raw).choices == ["Run", "Hide"]


def test_json_choices_not_a_list_defaults_to_empty():
    raw = '{"narration": "Fog.", "choices": "Run or hide"}'
    assert parse_reply(raw).choices == []


def test_json_missing_choices():
    assert parse_reply('{"narration": "Silence."}').choices == []


def test_json_reports_dialect():
    assert parse_reply_detailed('{"narration": "x"}').dialect == "json"


def test_json_with_empty_narration_falls_back_to_sections():
    raw = '{"narration": "  ", "choices": ["a"]}\nNARRATION:\nThe hall.\nCHOICES:\n1. Go'
    result = parse_reply_detailed(raw)
    assert result.dialect == "sections"
    assert result.turn.narration == "The hall."
    assert result.turn.choices == ["Go"]


def test_invalid_json_falls_back_to_whole_text():
    raw = '{"narration": "cut off'
    result = parse_reply_detailed(raw)
    assert result.dialect == "plain"
    assert result.turn.narration == raw


def test_json_array_is_not_a_reply():
    raw = '["narration", "choices"]'
    assert parse_reply(raw).narration == raw


# ── Legacy sections ──────────────────────────────────────────


LEGACY_REPLY = """NARRATION:
The cellar smells of wet earth.
Something shifts in the dark.

CHOICES:
1. Light a match.
2. Call out.
3. Climb back up.
4. Propose your own action."""


def test_parse_legacy_sections():
    parsed = parse_reply(LEGACY_REPLY)
    assert parsed.narration == "The cellar smells of wet earth.\nSomething shifts in the dark."
    assert parsed.choices == [
        "Light a match.",
        "Call out.",
        "Climb back up.",
        "Propose your own action.",
    ]


def test_legacy_labels_case_insensitive():
    raw = "narration: A bell tolls.\nchoices:\n1. Listen\n2. Leave"
    parsed = parse_reply(raw)
    assert parsed.narration == "A bell tolls."
    assert parsed.choices == ["Listen", "Leave"]


def test_legacy_ignores_non_numbered_lines():
    raw = "NARRATION:\nDark.\nCHOICES:\nPick one:\n1. Run\n- Hide\n  2.  Wait  \n"
    assert parse_reply(raw).choices == ["Run", "Wait"]


def test_legacy_multi_digit_numbers():
    lines = "\n".join(f"{i}. Option {i}" for i in range(1, 12))
    parsed = parse_reply(f"NARRATION:\nMany doors.\nCHOICES:\n{lines}")
    assert len(parsed.choices) == 11
    assert parsed.choices[-1] == "Option 11"


def test_choices_without_narration_label():
    raw = "The wind howls.\nCHOICES:\n1. Shelter"
    result = parse_reply_detailed(raw)
    assert result.dialect == "plain"
    assert result.turn.narration == raw
    assert result.turn.choices == ["Shelter"]


# ── Degraded input ───────────────────────────────────────────


def test_parse_empty_string():
    assert parse_reply("") == KeeperTurnParsed(narration="", choices=[])


def test_parse_plain_prose():
    parsed = parse_reply("  The candle gutters out.  \n")
    assert parsed.narration == "The candle gutters out."
    assert parsed.choices == []
