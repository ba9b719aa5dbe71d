"""
Canned response generator.

Keyword-driven replies used when the engine is absent or a generation call
fails. Deterministic: the same message always gets the same reply.
"""

import re
from typing import List, Tuple

HELP_REPLY = """I can help you with:
- Creating tasks: tell me what you want to do and I'll set it up.
- Planning: I can suggest how to break a goal into tasks.
- Motivation: a bit of encouragement whenever you need it.

Try saying:
- "create a main task: finish the project report"
- "help me make a study plan"
- "I want to build a habit of getting up early\""""

PLAN_REPLY = """Making a plan is a great idea!
Try this:
1. Pick the main goal
2. Break it into small tasks
3. Give each one a realistic time
4. Do a little every day

Tell me your goal and I can create the tasks for you!"""

HABIT_REPLY = """Habits take time and consistency!
A few tips:
- Start small
- Do it at the same time every day
- Track your progress
- Reward yourself

I can create a daily task to help you track the habit!"""

THANKS_REPLY = "You're welcome! Glad I could help.\nIf you need anything else, just ask!"

GREETING_REPLY = "Hi! I'm the LifeQuest assistant.\nI can help you manage tasks and make plans. What would you like to do?"

DEFAULT_REPLY = "Got it! I'm on it.\nIf you want to create a task, tell me what it is!"

_RULES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\b(help|how\s+to\s+use|usage)\b", re.IGNORECASE), HELP_REPLY),
    (re.compile(r"\b(plan|planning|schedule)\b", re.IGNORECASE), PLAN_REPLY),
    (re.compile(r"\b(habit|habits|keep\s+it\s+up|stick\s+to)\b", re.IGNORECASE), HABIT_REPLY),
    (re.compile(r"\b(thanks|thank\s+you|thx)\b", re.IGNORECASE), THANKS_REPLY),
    (re.compile(r"\b(hi|hello|hey)\b", re.IGNORECASE), GREETING_REPLY),
]


class CannedResponder:
    """First matching keyword bucket wins; DEFAULT_REPLY otherwise."""

    def respond(self, message: str) -> str:
        for pattern, reply in _RULES:
            if pattern.search(message or ""):
                return reply
        return DEFAULT_REPLY
