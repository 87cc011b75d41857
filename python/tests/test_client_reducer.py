"""Tests for the client view-state reducer."""

import pytest

from c3chat.client import (
    ChatViewState,
    ClientMessage,
    ContentReceived,
    Failed,
    MetadataReceived,
    Reset,
    SendStarted,
    Settled,
    reduce,
)


def sending(content: str = "Hi") -> ChatViewState:
    return reduce(ChatViewState(), SendStarted("u1", "p1", content))


class TestSendStarted:
    def test_adds_user_message_and_placeholder(self):
        state = sending("What is 2+2?")

        assert state.is_loading
        assert [(m.role, m.content, m.is_streaming) for m in state.messages] == [
            ("user", "What is 2+2?", False),
            ("assistant", "", True),
        ]
        assert state.placeholder.id == "p1"

    def test_ignored_while_loading(self):
        state = sending()
        assert reduce(state, SendStarted("u2", "p2", "again")) is state

    def test_clears_previous_error(self):
        failed = reduce(sending(), Failed("boom"))
        assert reduce(failed, SendStarted.new("retry")).error is None

    def test_new_generates_distinct_ids(self):
        action = SendStarted.new("x")
        assert action.user_message_id != action.placeholder_id


class TestStreamingActions:
    def test_metadata_sets_chat_id(self):
        assert reduce(sending(), MetadataReceived("chat-1")).chat_id == "chat-1"

    def test_content_replaces_placeholder_text(self):
        state = reduce(sending(), ContentReceived("Hel"))
        state = reduce(state, ContentReceived("Hello"))

        assert state.placeholder.content == "Hello"
        assert state.messages[0].content == "Hi"

    def test_replayed_content_is_a_no_op(self):
        state = reduce(sending(), ContentReceived("Hello"))
        assert reduce(state, ContentReceived("Hello")) is state

    def test_settled_finalizes_placeholder(self):
        state = reduce(sending(), MetadataReceived("chat-1"))
        state = reduce(state, ContentReceived("Hel"))
        state = reduce(state, Settled("Hello"))

        assert not state.is_loading
        assert state.placeholder is None
        assert state.messages[-1] == ClientMessage(id="p1", role="assistant", content="Hello")
        assert state.chat_id == "chat-1"

    def test_failed_keeps_user_message(self):
        state = reduce(reduce(sending(), ContentReceived("partial")), Failed("Provider down"))

        assert not state.is_loading
        assert state.error == "Provider down"
        assert [m.role for m in state.messages] == ["user"]

    def test_actions_ignored_when_idle(self):
        idle = ChatViewState(chat_id="c")
        for action in (MetadataReceived("x"), ContentReceived("x"), Settled("x"), Failed("x")):
            assert reduce(idle, action) is idle


class TestReset:
    def test_replaces_everything(self):
        messages = (ClientMessage(id="m1", role="user", content="old"),)

        state = reduce(reduce(sending(), Failed("e")), Reset(chat_id="c2", messages=messages))

        assert state == ChatViewState(chat_id="c2", messages=messages)

    def test_input_is_never_mutated(self):
        before = sending()
        snapshot = before.messages
        reduce(before, Settled("done"))
        assert before.messages == snapshot
        assert before.is_loading


FULL_REPLY = "The answer to 2+2 is 4, as any calculator will confirm."


def cumulative_prefixes(text: str, pieces: int) -> list[str]:
    """Split text into `pieces` growing prefixes, the last one being text itself."""
    cuts = [len(text) * i // pieces for i in range(1, pieces + 1)]
    return [text[:cut] for cut in cuts]


class TestChunkingIndependence:
    @pytest.mark.parametrize("pieces", [1, 2, 3, 10])
    def test_final_state_does_not_depend_on_chunking(self, pieces):
        one_record = reduce(reduce(sending(), ContentReceived(FULL_REPLY)), Settled(FULL_REPLY))

        state = sending()
        for prefix in cumulative_prefixes(FULL_REPLY, pieces):
            state = reduce(state, ContentReceived(prefix))
        many_records = reduce(state, Settled(FULL_REPLY))

        assert many_records == one_record
        assert many_records.messages[-1].content == FULL_REPLY

    @pytest.mark.parametrize("pieces", [2, 10])
    def test_replaying_every_record_twice_changes_nothing(self, pieces):
        once = twice = sending()
        for prefix in cumulative_prefixes(FULL_REPLY, pieces):
            once = reduce(once, ContentReceived(prefix))
            twice = reduce(reduce(twice, ContentReceived(prefix)), ContentReceived(prefix))

        assert twice == once
