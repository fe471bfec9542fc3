from concurrent.futures import ThreadPoolExecutor

import pytest

from oramacore_client.core.errors import InvalidState, NoHistory
from oramacore_client.core.models import LlmConfig, LlmProvider, Message, Role
from oramacore_client.core.state import ConversationState


def test_begin_turn_appends_pair_and_interaction():
    state = ConversationState([Message(role=Role.SYSTEM, content="be brief")])
    llm = LlmConfig(provider=LlmProvider.OPENAI, model="gpt-4o")
    handle = state.begin_turn("hi", "i-1", llm)

    messages = state.messages()
    assert [m.role for m in messages] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
    assert messages[1].content == "hi"
    assert messages[2].content == ""

    interaction = state.interactions()[0]
    assert interaction.id == handle.interaction_id == "i-1"
    assert interaction.query == "hi"
    assert interaction.loading is True
    assert interaction.current_step == "starting"
    assert interaction.selected_llm == llm


def test_snapshots_are_copies():
    state = ConversationState()
    state.begin_turn("hi", "i-1")
    state.messages()[-1].content = "mutated"
    state.interactions()[-1].response = "mutated"
    assert state.messages()[-1].content == ""
    assert state.interactions()[-1].response == ""


def test_initial_messages_are_copied():
    initial = [Message(role=Role.SYSTEM, content="x")]
    state = ConversationState(initial)
    initial[0].content = "changed"
    assert state.messages()[0].content == "x"


def test_finish_answer_sets_final_fields():
    state = ConversationState()
    handle = state.begin_turn("q", "i-1")
    assert state.finish_answer(handle, "final", sources=[{"id": "d1"}], related='["a"]')
    interaction = state.interactions()[0]
    assert interaction.response == "final"
    assert interaction.sources == [{"id": "d1"}]
    assert interaction.related == '["a"]'
    assert interaction.loading is False
    assert interaction.current_step == "completed"
    assert state.messages()[-1].content == "final"


def test_mark_aborted_only_applies_while_loading():
    state = ConversationState()
    handle = state.begin_turn("q", "i-1")
    state.mark_completed(handle)
    assert state.mark_aborted(handle) is False
    assert state.interactions()[0].aborted is False

    second = state.begin_turn("q2", "i-2")
    assert state.mark_aborted(second) is True
    interaction = state.interactions()[1]
    assert interaction.aborted is True
    assert interaction.loading is False


def test_clear_retires_outstanding_turns():
    state = ConversationState()
    handle = state.begin_turn("q", "i-1")
    state.clear()

    assert state.append_content(handle, "late") is False
    assert state.mark_error(handle, "late") is False
    assert state.mark_completed(handle) is False
    assert state.messages() == []
    assert state.interactions() == []


def test_regenerable_checks():
    state = ConversationState()
    with pytest.raises(NoHistory):
        state.check_regenerable()

    handle = state.begin_turn("q", "i-1")
    with pytest.raises(InvalidState, match="in progress"):
        state.check_regenerable()

    state.mark_completed(handle)
    state.check_regenerable()


def test_pop_last_turn_removes_pair_and_retires_token():
    state = ConversationState()
    first = state.begin_turn("one", "i-1")
    state.mark_completed(first)
    second = state.begin_turn("two", "i-2")
    state.mark_completed(second)

    popped = state.pop_last_turn()
    assert popped.id == "i-2"
    assert [m.content for m in state.messages()] == ["one", ""]
    assert [i.id for i in state.interactions()] == ["i-1"]
    assert state.append_content(second, "x") is False
    assert state.set_step(first, "still here") is True


def test_initial_messages_alone_are_not_regenerable():
    state = ConversationState([Message(role=Role.USER, content="orphan")])
    with pytest.raises(NoHistory):
        state.check_regenerable()
    with pytest.raises(NoHistory):
        state.pop_last_turn()
    assert len(state.messages()) == 1


def test_concurrent_turns_keep_two_messages_per_interaction():
    state = ConversationState()
    total = 200

    def run_case(i: int) -> None:
        handle = state.begin_turn(f"q-{i}", f"i-{i}")
        state.append_content(handle, f"a-{i}")
        if i % 3 == 0:
            state.mark_error(handle, "boom")
        else:
            state.mark_completed(handle)

    with ThreadPoolExecutor(max_workers=32) as pool:
        list(pool.map(run_case, range(total)))

    messages = state.messages()
    interactions = state.interactions()
    assert len(interactions) == total
    assert len(messages) == 2 * total
    for index, interaction in enumerate(interactions):
        user = messages[2 * index]
        assistant = messages[2 * index + 1]
        assert user.role == Role.USER
        assert assistant.role == Role.ASSISTANT
        assert user.content == interaction.query
        assert assistant.content == interaction.response
        assert interaction.loading is False
