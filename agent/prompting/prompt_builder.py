"""
Prompt Builder Layer
====================

Pure template renderers for every prompt sent to the local model.

Responsibilities:
- Few-shot intent classification prompt (single category word answer)
- Few-shot task-title extraction prompt (continues a "Title:" line)
- Assistant system preamble for question answering
- Question-answering and task-confirmation prompts

Invariants:
- Every renderer is a pure function of its inputs (exact prompts are assertable)
- Few-shot prompts end with the open answer label and no trailing text
- user_message is stripped and collapsed to one line before injection
"""

from dataclasses import dataclass
from typing import Sequence

# ── Budget Constants ──────────────────────────────────────────────────────────
_MAX_MESSAGE_CHARS: int = 300    # cap on user text injected into any prompt

INTENT_TASK_WORD = "task"
INTENT_QUESTION_WORD = "question"


@dataclass(frozen=True)
class FewShotExample:
    message: str
    answer: str


INTENT_EXAMPLES: Sequence[FewShotExample] = (
    FewShotExample("create a main task to learn Python", INTENT_TASK_WORD),
    FewShotExample("how do I get into the habit of waking up early", INTENT_QUESTION_WORD),
    FewShotExample("I want to learn Python", INTENT_TASK_WORD),
)

TITLE_EXAMPLES: Sequence[FewShotExample] = (
    FewShotExample(
        "help me set up a main task, I hope to find a new job before March",
        "find a new job before March",
    ),
    FewShotExample("create a daily task: run for 30 minutes every day", "run for 30 minutes every day"),
    FewShotExample("I want to learn Python programming", "learn Python programming"),
)

# ── Behavioral Contract ───────────────────────────────────────────────────────
SYSTEM_PREAMBLE = """You are the LifeQuest assistant, helping the user manage tasks and get things done.

Your job:
1. Help the user create and manage tasks
2. Give positive encouragement and advice
3. Answer questions about task management
4. Keep the conversation friendly and short

Reply rules:
- Clear and brief, at most 50 words
- Friendly, encouraging tone
- An emoji now and then is fine"""


def _one_line(text: str) -> str:
    return " ".join((text or "").split())[:_MAX_MESSAGE_CHARS]


def render_few_shot(
    instruction: str,
    examples: Sequence[FewShotExample],
    user_message: str,
    answer_label: str,
    user_label: str = "User",
) -> str:
    """
    Render instruction + worked examples + the live query.

    Layout:
        <instruction>

        User: <example>
        <Label>: <answer>
        ...
        User: <message>
        <Label>:
    """
    blocks = [instruction.strip()]
    for example in examples:
        blocks.append(f"{user_label}: {example.message}\n{answer_label}: {example.answer}")
    blocks.append(f"{user_label}: {_one_line(user_message)}\n{answer_label}:")
    return "\n\n".join(blocks)


def build_intent_prompt(user_message: str) -> str:
    """Few-shot prompt asking for a single category word."""
    return render_few_shot(
        instruction=(
            f'Classify the user\'s intent. Answer with only "{INTENT_TASK_WORD}" '
            f'or "{INTENT_QUESTION_WORD}".'
        ),
        examples=INTENT_EXAMPLES,
        user_message=user_message,
        answer_label="Intent",
    )


def build_title_prompt(user_message: str) -> str:
    """Few-shot prompt asking the model to continue a "Title:" line."""
    return render_few_shot(
        instruction="Extract the task title from the user's message.",
        examples=TITLE_EXAMPLES,
        user_message=user_message,
        answer_label="Title",
    )


def build_question_prompt(user_message: str) -> str:
    """User turn for question answering; pair with SYSTEM_PREAMBLE."""
    return f"The user asks: {_one_line(user_message)}\nReply (30 words max):"


def build_confirmation_prompt(task_title: str) -> str:
    """Short confirm-and-encourage prompt after a task was created."""
    return f"The user created the task: {_one_line(task_title)}\nConfirm it and encourage them in 20 words or fewer."
