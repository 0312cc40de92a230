"""Handlebars rendering for content-generation prompts and fallback responses."""

from collections.abc import Callable
from typing import Any

import pybars

from haunted_debug.models import Anomaly, MeterState


_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_take(this, options, items, count):
    """{{#take array N}}...{{/take}}: iterate over the first N items."""
    result = []
    for item in list(items)[:int(count)]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "take": _helper_take,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Templates ────────────────────────────────────────────

DIALOGUE_PROMPT = """You are {{{anomaly.name}}}, a ghost haunting a codebase.
You embody the software smell "{{anomaly.smell}}": {{{anomaly.description}}}
Stay in character. Be cryptic but teach something real about the defect.

System stability: {{gauges.stability}}/100. Player insight: {{gauges.insight}}/100.
{{#if hints}}Things the player should eventually learn:
{{#take hints 3}}- {{{this}}}
{{/take}}{{/if}}
Player: {{{message}}}
{{{anomaly.name}}}:"""

EXPLANATION_PROMPT = """Explain in two or three sentences why this change fixes the {{anomaly.smell}} defect.
Approach: {{approach}}. Complexity: {{complexity}}. Risk: {{risk}}.

{{{diff}}}
"""

FALLBACK_DIALOGUE = """{{{line}}}{{#if hint}}

(Hint: {{{hint}}}){{/if}}"""


def build_context(
    anomaly: Anomaly,
    gauges: MeterState,
    message: str = "",
    turn: int = 0,
    **extra: Any,
) -> dict[str, Any]:
    """Assemble template variables for one anomaly conversation.

    Hints are revealed as insight grows: one per 25 insight points, at least one.
    """
    revealed = max(1, gauges.insight // 25 + 1)
    hints = anomaly.hints[:revealed]
    lines = list(anomaly.dialogue_prompts) or [f"{anomaly.name} stares at you in silence..."]
    ctx: dict[str, Any] = {
        "anomaly": {
            "id": anomaly.id,
            "name": anomaly.name,
            "smell": anomaly.smell.value,
            "description": anomaly.description,
        },
        "line": lines[turn % len(lines)],
        "gauges": {"stability": gauges.stability, "insight": gauges.insight},
        "message": message,
        "turn": turn,
        "hints": hints,
        "hint": hints[turn % len(hints)] if hints else "",
    }
    ctx.update(extra)
    return ctx
