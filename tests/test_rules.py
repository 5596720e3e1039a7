import anthropic
import httpx
import pytest

from kitchen_rotation.core import ai_assistant, rules
from kitchen_rotation.core.feedback import FeedbackBatch, RatingIn, submit_batch
from kitchen_rotation.core.pairing_scores import aggregate_pairing_scores
from kitchen_rotation.db.models import LearnedRule


@pytest.fixture
def rated(db, add_recipe):
    ids = {
        "schnitzel": add_recipe("Wiener Schnitzel", "MainMeat"),
        "kartoffeln": add_recipe("Petersilkartoffeln", "Sides"),
        "reis": add_recipe("Reis", "Sides"),
        "salat": add_recipe("Gurkensalat", "Salads"),
    }

    def rate(side, pairing_type, values):
        return [
            RatingIn(day_of_week=1, meal="lunch", location_slug="city",
                     main_recipe_id=ids["schnitzel"], side_recipe_id=ids[side],
                     pairing_type=pairing_type, rating=v)
            for v in values
        ]

    submit_batch(FeedbackBatch(template_id=1, week_nr=1, ratings=[
        *rate("kartoffeln", "main_starch", [5, 5, 4]),
        *rate("reis", "main_starch", [1, 2, 1]),
        *rate("salat", "main_veggie", [3, 3, 4]),
    ]))
    aggregate_pairing_scores()
    return ids


def test_analyze_patterns_classifies(rated):
    patterns = rules.analyze_patterns()
    assert [(p.side_recipe_name, p.pattern) for p in patterns] == [
        ("Petersilkartoffeln", "preferred"),
        ("Reis", "forbidden"),
    ]


def test_analyze_patterns_respects_min_count(rated):
    assert rules.analyze_patterns(min_count=4) == []


def test_rule_type_and_confidence(rated):
    preferred, forbidden = rules.analyze_patterns()
    assert rules.rule_type_for(preferred) == "preferred_starch"
    assert rules.rule_type_for(forbidden) == "forbidden_starch"
    assert rules.pattern_confidence(3) == 0.5
    assert rules.pattern_confidence(30) > rules.pattern_confidence(10)


def test_learn_rules_creates_once(rated):
    result = rules.learn_rules()
    assert result["inserted"] == 2
    assert {(r.rule_type, r.target_recipe_name) for r in result["rules"]} == {
        ("preferred_starch", "Petersilkartoffeln"),
        ("forbidden_starch", "Reis"),
    }
    assert all(r.source == "human" for r in rules.get_rules())

    again = rules.learn_rules()
    assert again["inserted"] == 0
    assert len(rules.get_rules()) == 2


def test_learn_rules_without_patterns(db):
    result = rules.learn_rules()
    assert result == {"rules": [], "inserted": 0, "message": rules.NO_PATTERNS_MESSAGE}


def test_set_rule_active(rated):
    rules.learn_rules()
    rule = rules.get_rules()[0]
    assert rules.set_rule_active(rule.id, False).is_active is False
    assert len(rules.get_rules(active_only=True)) == 1
    assert rules.set_rule_active(9999, True) is None


def test_create_rule_validates_source(rated):
    with pytest.raises(ValueError):
        rules.create_rule(LearnedRule(id=None, main_recipe_id=rated["schnitzel"],
                                      rule_type="general", source="robot"))
    rule = rules.create_rule(LearnedRule(id=None, main_recipe_id=rated["schnitzel"],
                                         rule_type="general", description="Immer mit Zitrone"))
    assert rule.main_recipe_name == "Wiener Schnitzel"
    assert rules.create_rule(LearnedRule(id=None, main_recipe_id=rated["schnitzel"],
                                         rule_type="general")) is None


def test_ai_validate_stores_resolvable_suggestions(rated, monkeypatch):
    def fake_suggest(patterns):
        assert len(patterns) == 2
        return [
            {"main_recipe_name": "wiener schnitzel", "rule_type": "preferred_starch",
             "target_recipe_name": "Petersilkartoffeln", "confidence": 0.9,
             "description": "Klassische Beilage"},
            {"main_recipe_name": "Unbekanntes Gericht", "rule_type": "general",
             "target_recipe_name": None, "confidence": 0.4, "description": None},
        ]

    monkeypatch.setattr(ai_assistant, "suggest_rules", fake_suggest)
    result = rules.ai_validate()
    assert result["inserted"] == 1
    assert len(result["rules"]) == 2
    stored = rules.get_rules()
    assert [(r.source, r.confidence) for r in stored] == [("ai", 0.9)]


def test_ai_validate_without_patterns(db, monkeypatch):
    monkeypatch.setattr(ai_assistant, "suggest_rules", lambda p: pytest.fail("should not call AI"))
    result = rules.ai_validate()
    assert result["rules"] == []
    assert "Not enough feedback" in result["message"]


def test_ai_validate_unparseable_reply(rated, monkeypatch):
    monkeypatch.setattr(ai_assistant, "suggest_rules", lambda p: None)
    result = rules.ai_validate()
    assert result["rules"] == []
    assert result["inserted"] == 0


def test_ai_validate_api_error_is_soft(rated, monkeypatch):
    def failing(patterns):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        raise anthropic.APIConnectionError(request=request)

    monkeypatch.setattr(ai_assistant, "suggest_rules", failing)
    result = rules.ai_validate()
    assert result["rules"] == []
    assert "AI request failed" in result["message"]


def test_ai_validate_without_key_raises(rated, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(ValueError):
        rules.ai_validate()


# ── Claude reply parsing ───────────────────────────────────────────────────────

def test_extract_json_from_fenced_reply():
    text = 'Here you go:\n```json\n[{"mainRecipeName": "Tafelspitz"}]\n```'
    assert ai_assistant._extract_json(text, "[", "]") == [{"mainRecipeName": "Tafelspitz"}]
    assert ai_assistant._extract_json("no json here", "[", "]") is None


def test_clean_rule_normalizes_fields():
    rule = ai_assistant._clean_rule({
        "mainRecipeName": "Tafelspitz", "ruleType": "nonsense",
        "targetRecipeName": "Apfelkren", "confidence": "7",
    })
    assert rule == {
        "main_recipe_name": "Tafelspitz", "rule_type": "general",
        "target_recipe_name": "Apfelkren", "confidence": 1.0, "description": None,
    }
    assert ai_assistant._clean_rule({"ruleType": "general"}) is None


class _FakeMessages:
    def __init__(self, text):
        self.text = text

    def create(self, **kwargs):
        block = type("Block", (), {"text": self.text})()
        return type("Message", (), {"content": [block]})()


class _FakeClient:
    def __init__(self, text):
        self.messages = _FakeMessages(text)


def test_research_combo_parses_verdict(monkeypatch):
    reply = '{"score": 9, "verdict": "Passt", "problem": null, "suggestion": null, "classic": "mit Apfelkren"}'
    monkeypatch.setattr(ai_assistant, "_get_client", lambda: _FakeClient(reply))
    result = ai_assistant.research_combo("Tafelspitz mit Rösti", soup="Frittatensuppe")
    assert result["score"] == 5
    assert result["verdict"] == "Passt"
    assert result["classic"] == "mit Apfelkren"


def test_research_combo_falls_back_to_neutral(monkeypatch):
    monkeypatch.setattr(ai_assistant, "_get_client", lambda: _FakeClient("Keine Ahnung."))
    assert ai_assistant.research_combo("Fisch mit Pudding") == ai_assistant.NEUTRAL_VERDICT
