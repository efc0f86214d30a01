from parley_agents.rooms import SpeakerRole, entry_for, flip_history, history_for
from parley_core.llm import LLMMessage


def _canonical():
    return [
        LLMMessage(role="assistant", content="Hello, what brings you in?"),
        LLMMessage(role="user", content="I have a cough."),
        LLMMessage(role="assistant", content="How long has it lasted?"),
    ]


def test_role_follows_turn_parity():
    assert [SpeakerRole.for_turn(n) for n in range(4)] == [
        SpeakerRole.INITIATOR,
        SpeakerRole.RESPONDENT,
        SpeakerRole.INITIATOR,
        SpeakerRole.RESPONDENT,
    ]


def test_flip_swaps_self_and_other():
    flipped = flip_history(_canonical())

    assert [m.role for m in flipped] == ["user", "assistant", "user"]
    assert [m.content for m in flipped] == [m.content for m in _canonical()]


def test_initiator_sees_canonical_history():
    history = _canonical()
    view = history_for(SpeakerRole.INITIATOR, history)

    assert view == history
    assert view is not history


def test_respondent_sees_inverted_history_without_mutating_input():
    history = _canonical()
    view = history_for(SpeakerRole.RESPONDENT, history)

    assert view[0] == LLMMessage(role="user", content="Hello, what brings you in?")
    assert view[1] == LLMMessage(role="assistant", content="I have a cough.")
    assert history == _canonical()


def test_entry_for_uses_initiator_perspective():
    assert entry_for(SpeakerRole.INITIATOR, "hi").role == "assistant"
    assert entry_for(SpeakerRole.RESPONDENT, "hello").role == "user"


def test_flip_is_an_involution():
    assert flip_history(flip_history(_canonical())) == _canonical()
