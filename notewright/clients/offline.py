# notewright/clients/offline.py
"""
Deterministic stand-in for the generation provider.

Used whenever no API key is configured. Output has exactly the shape a real
model is asked for (readiness marker on interview turns, "# Title" first
line on articles), so every pipeline contract can be exercised offline.
"""

from typing import List

from notewright.core.generation import ChatMessage, GenerationRequest
from notewright.prompts.interview import (
    OPENING_INSTRUCTION,
    READINESS_MARKER_END,
    READINESS_MARKER_START,
    SKIP_SENTINEL,
)
from notewright.utils.logging import get_logger

logger = get_logger(__name__)

READINESS_PER_ANSWER = 16
ANSWERS_FOR_FULL = 5
ANSWERS_FOR_BONUS = 6

_DEPTH_QUESTIONS = (
    "I see. Do you have a concrete episode or example?",
    "That's interesting. What is the one point you most want readers to take away?",
    "Could you tell me a bit more? Why did you come to think that way?",
)

_EXPAND_QUESTIONS = (
    "Great. Is there anything else you want to add, or that readers should know?",
    "Did anything change for you, or did you learn something, through this experience?",
    "Finally, if you had to sum up this theme in one sentence, how would you put it?",
)

_CLOSING = (
    "Thank you. We have gathered plenty of material.\n\n"
    "Complete the interview whenever you are ready and the article will be written from this conversation."
)


def _user_turns(messages: List[ChatMessage]) -> List[str]:
    return [
        m.get("content", "") for m in messages
        if m.get("role") == "user" and m.get("content") != OPENING_INSTRUCTION
    ]


def _answers(messages: List[ChatMessage]) -> List[str]:
    return [c for c in _user_turns(messages) if c.strip() and c.strip() != SKIP_SENTINEL]


def _marker(value: int) -> str:
    return f"{READINESS_MARKER_START}{value}{READINESS_MARKER_END}"


class OfflineGenerator:
    name = "offline"

    async def generate(self, request: GenerationRequest) -> str:
        logger.info("[offline] purpose=%s prompt=%s msg_count=%d",
                    request.purpose, request.prompt_version or "-", len(request.messages))
        if request.purpose == "interview":
            return self._interview_turn(request)
        if request.purpose == "rewrite":
            return f"# {request.source_title}\n\n{request.source_content}"
        return self._article(request)

    def _interview_turn(self, request: GenerationRequest) -> str:
        ctx = request.context
        turns = _user_turns(request.messages)
        answered = len(_answers(request.messages))

        if answered >= ANSWERS_FOR_BONUS:
            readiness = 100
        else:
            readiness = min(80, answered * READINESS_PER_ANSWER)

        if not any(m.get("role") == "assistant" for m in request.messages):
            if ctx.memos:
                question = (
                    f"I read your notes on \"{ctx.theme_title}\".\n\n"
                    f"\"{ctx.memos[0][:30]}...\" caught my attention in particular.\n\n"
                    "What made you want to write about this theme?"
                )
            else:
                lead = f"You described it as \"{ctx.theme_description}\". " if ctx.theme_description else ""
                question = (
                    f"So you want to write about \"{ctx.theme_title}\".\n\n"
                    f"{lead}First, what got you interested in this theme?"
                )
            return f"{question}\n{_marker(0)}"

        n = len(turns)
        if answered >= ANSWERS_FOR_FULL:
            question = _CLOSING
        elif n <= len(_DEPTH_QUESTIONS):
            question = _DEPTH_QUESTIONS[max(0, n - 1)]
        else:
            idx = (n - len(_DEPTH_QUESTIONS) - 1) % len(_EXPAND_QUESTIONS)
            question = _EXPAND_QUESTIONS[idx]
        return f"{question}\n{_marker(readiness)}"

    def _article(self, request: GenerationRequest) -> str:
        title = request.context.theme_title or "Untitled article"
        answers = _answers(request.transcript)
        body = "\n\n".join(answers) or "The article body goes here."
        return (
            f"# Thoughts on {title}\n\n"
            "## Introduction\n\n"
            f"This time I put my thoughts on \"{title}\" into words.\n\n"
            "## The story\n\n"
            f"{body}\n\n"
            "## Closing\n\n"
            "Thank you for reading to the end.\n"
            "I hope this gives you a useful hint."
        )
