from switchboard.models.conversation import Conversation, HistoryRole


def make_conversation(**fields):
    return Conversation(id="conv-1", customer_id="cust-1", **fields)


class TestHistory:
    def test_keeps_most_recent_entries_in_order(self):
        conversation = make_conversation()

        for i in range(25):
            conversation.append_history(HistoryRole.USER, f"msg-{i}")

        texts = [entry.text for entry in conversation.history]
        assert len(texts) == 20
        assert texts == [f"msg-{i}" for i in range(5, 25)]
        for i in range(5):
            assert f"msg-{i}" not in texts

    def test_record_turn_adds_both_sides(self):
        conversation = make_conversation()

        conversation.record_turn("hi", "hello there")

        assert [(entry.role, entry.text) for entry in conversation.history] == [
            (HistoryRole.USER, "hi"),
            (HistoryRole.ASSISTANT, "hello there"),
        ]

    def test_custom_limit(self):
        conversation = make_conversation()

        for i in range(6):
            conversation.record_turn(f"q{i}", f"a{i}", limit=4)

        assert [entry.text for entry in conversation.history] == ["q4", "a4", "q5", "a5"]


class TestTransfer:
    def test_transfer_clears_pending_menu(self):
        conversation = make_conversation(awaiting_selection=True, step="menu")

        conversation.transfer_to("billing", "Matched keywords: invoice")

        assert conversation.department == "billing"
        assert conversation.transferred_from == "general"
        assert conversation.transfer_reason == "Matched keywords: invoice"
        assert conversation.awaiting_selection is False
        assert conversation.step == "conversation"
        assert conversation.last_transfer_at is not None

    def test_defaults(self):
        conversation = make_conversation()

        assert conversation.department == "general"
        assert conversation.step == "conversation"
        assert conversation.history == []
        assert conversation.needs_human_agent is False
