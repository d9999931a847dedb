import pytest

from switchboard.services.intent_service import (
    Intent,
    classify_intent,
    is_human_request_message,
    is_return_to_hub_message,
    normalize_for_matching,
)


class TestNormalize:
    def test_collapses_whitespace_and_case(self):
        assert normalize_for_matching("  Human   AGENT!! ") == "human agent"

    def test_empty(self):
        assert normalize_for_matching("") == ""
        assert normalize_for_matching("?!") == ""


class TestHumanRequest:
    @pytest.mark.parametrize(
        "text",
        [
            "I want a human agent",
            "Can I talk to a REAL PERSON?",
            "let me speak to someone",
            "customer service please",
            "representative",
        ],
    )
    def test_detects_human_request(self, text):
        assert is_human_request_message(text) is True

    @pytest.mark.parametrize("text", ["my lights won't turn on", "I need a refund", ""])
    def test_ignores_other_messages(self, text):
        assert is_human_request_message(text) is False


class TestReturnToHub:
    @pytest.mark.parametrize("text", ["Go back", "main menu please", "I have a different question", "Start over"])
    def test_detects_return(self, text):
        assert is_return_to_hub_message(text) is True

    def test_ignores_specialist_question(self):
        assert is_return_to_hub_message("the router keeps rebooting") is False


class TestClassifyIntent:
    def test_human_request_wins(self):
        assert classify_intent("go back, I want a real person") == Intent.HUMAN_REQUEST

    def test_return_to_hub(self):
        assert classify_intent("main menu") == Intent.RETURN_TO_HUB

    def test_other(self):
        assert classify_intent("how much is shipping?") == Intent.OTHER
