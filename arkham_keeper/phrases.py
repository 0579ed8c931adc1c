"""In-fiction phrases the turn orchestrator writes into a session.

Only the strings the core itself produces live here; unknown language tags
fall back to English.
"""

from __future__ import annotations

KEEPER_PHRASES: dict[str, dict[str, str]] = {
    "en": {
        "intro_prompt": (
            "Begin the scenario \"{scenario}\". Introduce the opening scene for "
            "{investigator} and offer the first choices."
        ),
        "intro_fallback": (
            "The air grows still as the story begins. Something waits just "
            "beyond the edge of your perception."
        ),
        "message_fallback": (
            "A heavy silence follows your action. The world holds its breath, "
            "waiting for your next move."
        ),
        "silent_fallback": "The Keeper is silent for a moment. The shadows seem to wait.",
        "player_rewrote_action": "The player rewrote their previous action.",
        "choice": "I choose option {index}: {text}",
    },
    "ru": {
        "intro_prompt": (
            "Начни сценарий «{scenario}». Опиши первую сцену для "
            "{investigator} и предложи первые варианты действий."
        ),
        "intro_fallback": (
            "Воздух замирает, история начинается. Что-то ждёт на самом краю "
            "вашего восприятия."
        ),
        "message_fallback": (
            "После вашего действия повисает тяжёлая тишина. Мир затаил "
            "дыхание в ожидании следующего шага."
        ),
        "silent_fallback": "Хранитель на мгновение умолкает. Тени словно чего-то ждут.",
        "player_rewrote_action": "Игрок переписал своё предыдущее действие.",
        "choice": "Я выбираю вариант {index}: {text}",
    },
}


def phrase(language: str, key: str, **values: object) -> str:
    """Look up a phrase for language, formatting any {placeholders}."""
    table = KEEPER_PHRASES.get(language, KEEPER_PHRASES["en"])
    template = table.get(key) or KEEPER_PHRASES["en"][key]
    return template.format(**values) if values else template
