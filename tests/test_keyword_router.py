import pytest

from switchboard.errors import ConfigurationError
from switchboard.models.routing import RoutingRule
from switchboard.services.keyword_router import DEFAULT_RULES, KeywordRouter


class TestRoute:
    def test_same_input_gives_same_result(self, keyword_router):
        first = keyword_router.route("my invoice shows a double charge", "general")
        second = keyword_router.route("my invoice shows a double charge", "general")

        assert first == second

    def test_lights_not_turning_on_routes_to_technical(self, keyword_router):
        result = keyword_router.route("my lights won't turn on", "general")

        assert result.department == "technical"
        assert result.confidence == pytest.approx(0.9)
        assert result.suggestions is None

    def test_curly_apostrophe_matches(self, keyword_router):
        result = keyword_router.route("My lights won’t turn on", "general")
        assert result.department == "technical"

    def test_keyword_scores_accumulate(self, keyword_router):
        result = keyword_router.route("I want to buy, what is the price?", "general")

        assert result.department == "sales"
        assert result.score == pytest.approx(1.6)
        assert result.confidence == 1.0
        assert "buy" in result.reasons[0]
        assert "price" in result.reasons[0]

    def test_no_match_returns_hub_with_suggestions(self, keyword_router):
        result = keyword_router.route("xyz", "general")

        assert result.department == "general"
        assert result.score == 0
        assert result.confidence == 0
        assert [s.id for s in result.suggestions] == ["sales", "technical", "support", "billing"]

    def test_no_suggestions_outside_hub(self, keyword_router):
        result = keyword_router.route("xyz", "sales")
        assert result.suggestions is None

    def test_tie_goes_to_first_declared_rule(self):
        router = KeywordRouter(
            rules=[
                RoutingRule(department="sales", keywords=("widget",), priority=0.5),
                RoutingRule(department="billing", keywords=("widget",), priority=0.5),
            ]
        )

        assert router.route("widget", "general").department == "sales"

    def test_highest_cumulative_score_wins(self):
        router = KeywordRouter(
            rules=[
                RoutingRule(department="sales", keywords=("widget",), priority=0.6),
                RoutingRule(department="billing", keywords=("widget", "invoice"), priority=0.4),
            ]
        )

        result = router.route("widget invoice", "general")

        assert result.department == "billing"
        assert result.score == pytest.approx(0.8)

    def test_custom_hub_department(self):
        router = KeywordRouter(rules=DEFAULT_RULES)
        result = router.route("xyz", "support", hub_department="support")

        assert result.department == "support"
        assert "support" not in [s.id for s in result.suggestions]


class TestRuleTable:
    def test_rejects_unknown_department(self, keyword_router):
        with pytest.raises(ConfigurationError):
            keyword_router.set_rules([RoutingRule(department="legal", keywords=("lawyer",), priority=0.9)])

    def test_failed_update_keeps_previous_table(self, keyword_router):
        before = keyword_router.rules
        with pytest.raises(ConfigurationError):
            keyword_router.set_rules([RoutingRule(department="legal", keywords=("lawyer",), priority=0.9)])
        assert keyword_router.rules is before

    def test_keywords_are_lowercased(self):
        router = KeywordRouter(rules=[RoutingRule(department="sales", keywords=("Widget",), priority=0.9)])
        assert router.route("WIDGET", "general").department == "sales"

    def test_specialists_exclude_hub(self, keyword_router):
        assert [d.id for d in keyword_router.specialists()] == ["sales", "technical", "support", "billing"]


class TestFindDepartment:
    def test_by_keyword(self, keyword_router):
        assert keyword_router.find_department("billing please").id == "billing"

    def test_by_name(self, keyword_router):
        assert keyword_router.find_department("Customer Support").id == "support"

    def test_by_short_keyword(self, keyword_router):
        assert keyword_router.find_department("tech").id == "technical"

    def test_by_menu_position(self, keyword_router):
        assert keyword_router.find_department("2").id == "technical"

    def test_out_of_range_position(self, keyword_router):
        assert keyword_router.find_department("9") is None

    def test_no_match(self, keyword_router):
        assert keyword_router.find_department("pizza") is None

    def test_empty_text(self, keyword_router):
        assert keyword_router.find_department("   ") is None
