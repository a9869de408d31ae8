"""
Unit tests for prompt assembly and history windowing.
"""

import pytest

from app.models.chat import ConversationTurn
from app.services.prompt import GROUNDING_RULE, Prompt, PromptAssembler


def make_history(count: int) -> list[ConversationTurn]:
    return [
        ConversationTurn(role="user" if i % 2 == 0 else "assistant", content=f"turn {i}")
        for i in range(count)
    ]


def test_build_prefix_without_directive():
    assembler = PromptAssembler("You are a helpful assistant.", max_turns=3)
    assert assembler.build_prefix() == (
        f"You are a helpful assistant.\n\n{GROUNDING_RULE}\n\n"
    )


def test_build_prefix_puts_directive_first():
    assembler = PromptAssembler("Be brief.", max_turns=3)
    prefix = assembler.build_prefix("Reply in French.\n\n")
    assert prefix.startswith("Reply in French.\n\nBe brief.")


@pytest.mark.parametrize("length", [0, 1, 5, 6, 7, 12])
def test_history_window_length(length):
    assembler = PromptAssembler("x", max_turns=3)
    window = assembler.window_history(make_history(length))
    assert len(window) == min(length, 6)


def test_history_window_keeps_newest_turns():
    assembler = PromptAssembler("x", max_turns=2)
    window = assembler.window_history(make_history(7))
    assert [t.content for t in window] == ["turn 3", "turn 4", "turn 5", "turn 6"]


def test_zero_max_turns_drops_history():
    assembler = PromptAssembler("x", max_turns=0)
    assert assembler.window_history(make_history(4)) == []


def test_assemble_appends_current_message():
    assembler = PromptAssembler("x", max_turns=1)
    history = make_history(4)
    prompt = assembler.assemble("PREFIX ", "SOURCES", history, "What now?")

    assert prompt.system_content == "PREFIX SOURCES"
    assert [t.content for t in prompt.turns] == ["turn 2", "turn 3", "What now?"]
    assert prompt.turns[-1].role == "user"
    # Caller's history is left untouched
    assert len(history) == 4


def test_to_messages():
    prompt = Prompt(
        system_content="system",
        turns=[ConversationTurn(role="user", content="hello")],
    )
    assert prompt.to_messages() == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "hello"},
    ]
