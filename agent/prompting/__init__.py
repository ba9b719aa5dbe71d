"""
Prompt Builder layer for the LifeQuest assistant.

Exports the SYSTEM_PREAMBLE behavioral contract and the prompt renderers.
"""

from .prompt_builder import (
    SYSTEM_PREAMBLE,
    FewShotExample,
    render_few_shot,
    build_intent_prompt,
    build_title_prompt,
    build_question_prompt,
    build_confirmation_prompt,
)

__all__ = [
    "SYSTEM_PREAMBLE",
    "FewShotExample",
    "render_few_shot",
    "build_intent_prompt",
    "build_title_prompt",
    "build_question_prompt",
    "build_confirmation_prompt",
]
