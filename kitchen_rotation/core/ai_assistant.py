"""Claude AI integration — pairing rule suggestions and menu combo verdicts.

Public functions call the Anthropic API using the key stored in the settings
table (falling back to ANTHROPIC_API_KEY).  Responses are requested as JSON
and parsed leniently; callers get plain dicts/lists back.  These calls are
slow and are only made from explicitly triggered endpoints.
"""

import json
import os
import re
from typing import Optional

from kitchen_rotation.config import get_setting
from kitchen_rotation.db.models import AnalyzedPattern

RULES_MODEL = "claude-sonnet-4-5-20250929"
RESEARCH_MODEL = "claude-haiku-4-5-20251001"

RULE_TYPES = ("preferred_starch", "forbidden_starch", "preferred_veggie", "forbidden_veggie", "general")


def _get_api_key() -> Optional[str]:
    """Retrieve the Claude API key from the settings table or the environment."""
    return get_setting("claude_api_key") or os.environ.get("ANTHROPIC_API_KEY")


def _get_client():
    """Create and return an Anthropic client. Raises ValueError if the API key is not set."""
    import anthropic
    api_key = _get_api_key()
    if not api_key:
        raise ValueError("Claude API key not set. Add it under /settings or set ANTHROPIC_API_KEY.")
    return anthropic.Anthropic(api_key=api_key)


def _extract_json(text: str, opener: str, closer: str):
    """Pull the first JSON array/object out of a Claude reply, or None."""
    match = re.search(r"```(?:json)?\s*([\s\S]+?)\s*```", text)
    candidate = match.group(1) if match else text
    start = candidate.find(opener)
    end = candidate.rfind(closer)
    if start == -1 or end <= start:
        return None
    try:
        return json.loads(candidate[start:end + 1])
    except json.JSONDecodeError:
        return None


def _format_patterns(patterns: list[AnalyzedPattern], kind: str) -> str:
    lines = [
        f"- {p.main_recipe_name} + {p.side_recipe_name} ({p.pairing_type}): "
        f"avg {p.avg_score}/5 ({p.rating_count} ratings)"
        for p in patterns if p.pattern == kind
    ]
    return "\n".join(lines) or "None"


def _clean_rule(raw) -> Optional[dict]:
    """Normalize one suggested rule; None if it lacks a main dish."""
    if not isinstance(raw, dict) or not raw.get("mainRecipeName"):
        return None
    rule_type = raw.get("ruleType")
    if rule_type not in RULE_TYPES:
        rule_type = "general"
    try:
        confidence = max(0.0, min(1.0, float(raw.get("confidence", 0.5))))
    except (TypeError, ValueError):
        confidence = 0.5
    return {
        "main_recipe_name": str(raw["mainRecipeName"]),
        "rule_type": rule_type,
        "target_recipe_name": raw.get("targetRecipeName"),
        "confidence": confidence,
        "description": raw.get("description"),
    }


def suggest_rules(patterns: list[AnalyzedPattern]) -> Optional[list[dict]]:
    """Ask Claude for pairing rules backing the observed patterns.

    Returns a list of {main_recipe_name, rule_type, target_recipe_name, confidence,
    description}, or None if the reply could not be parsed.
    """
    client = _get_client()
    prompt = f"""You are an experienced head chef reviewing how cooks rated main dish / side dish pairings.

GOOD PAIRINGS (avg >= 4.0):
{_format_patterns(patterns, "preferred")}

BAD PAIRINGS (avg <= 2.0):
{_format_patterns(patterns, "forbidden")}

Based on this data and your culinary knowledge, propose pairing rules.
Return a JSON array like this:
```json
[
  {{
    "mainRecipeName": "Name of the main dish",
    "ruleType": "preferred_starch | forbidden_starch | preferred_veggie | forbidden_veggie | general",
    "targetRecipeName": "Name of the side dish",
    "confidence": 0.8,
    "description": "Short reason"
  }}
]
```

Return only the JSON array, wrapped in ```json``` code fences."""

    message = client.messages.create(
        model=RULES_MODEL,
        max_tokens=2000,
        messages=[{"role": "user", "content": prompt}],
    )
    data = _extract_json(message.content[0].text, "[", "]")
    if not isinstance(data, list):
        return None
    return [rule for rule in (_clean_rule(r) for r in data) if rule]


NEUTRAL_VERDICT = {
    "score": 3,
    "verdict": "Could not be analysed",
    "problem": None,
    "suggestion": None,
    "classic": None,
}


def research_combo(combo: str, soup: str = "") -> dict:
    """Short Claude verdict on a menu combination: {score, verdict, problem, suggestion, classic}."""
    client = _get_client()
    prompt = f"""You are an experienced Austrian head chef. Rate this menu combination briefly:

Soup: {soup or "none"}
Main course: {combo}

Return only a JSON object:
{{
  "score": 1-5,
  "verdict": "1-2 sentence assessment",
  "problem": "the problem if score <= 2, else null",
  "suggestion": "a better alternative if score <= 3, else null",
  "classic": "the classic Austrian variant if relevant, else null"
}}"""

    message = client.messages.create(
        model=RESEARCH_MODEL,
        max_tokens=500,
        messages=[{"role": "user", "content": prompt}],
    )
    data = _extract_json(message.content[0].text, "{", "}")
    if not isinstance(data, dict):
        return dict(NEUTRAL_VERDICT)
    result = {**NEUTRAL_VERDICT, **{k: data.get(k) for k in NEUTRAL_VERDICT if k in data}}
    try:
        result["score"] = max(1, min(5, int(result["score"])))
    except (TypeError, ValueError):
        result["score"] = NEUTRAL_VERDICT["score"]
    return result
