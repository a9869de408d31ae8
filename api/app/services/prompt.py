"""
Prompt assembly: system instructions, budgeted sources and the
windowed conversation history.

The caller's history holds prior turns only. The current message is
always appended here, never read from the history.
"""

from dataclasses import dataclass, field

from app.models.chat import ConversationTurn

GROUNDING_RULE = "Use only the info from sources. If no answer, say you don't know."


@dataclass(frozen=True)
class Prompt:
    system_content: str
    turns: list[ConversationTurn] = field(default_factory=list)

    def to_messages(self) -> list[dict[str, str]]:
        """Render as the message array the chat completion API expects."""
        messages = [{"role": "system", "content": self.system_content}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in self.turns)
        return messages


class PromptAssembler:
    def __init__(self, instructions: str, max_turns: int) -> None:
        self.instructions = instructions
        self.max_turns = max_turns

    def build_prefix(self, language_directive: str = "") -> str:
        """System prompt text that precedes the sources."""
        return f"{language_directive}{self.instructions}\n\n{GROUNDING_RULE}\n\n"

    def window_history(self, history: list[ConversationTurn]) -> list[ConversationTurn]:
        """Keep the last 2 * max_turns entries, dropping the oldest first."""
        limit = 2 * self.max_turns
        if limit <= 0:
            return []
        return list(history[-limit:])

    def assemble(
        self,
        prefix: str,
        sources: str,
        history: list[ConversationTurn],
        message: str,
    ) -> Prompt:
        turns = self.window_history(history)
        turns.append(ConversationTurn(role="user", content=message))
        return Prompt(system_content=prefix + sources, turns=turns)
