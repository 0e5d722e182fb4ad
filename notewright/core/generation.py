# notewright/core/generation.py
"""
Contract between the engine and whatever produces text.

A generator receives a GenerationRequest and returns raw text. It signals
throttling by raising RateLimited; anything else it raises is treated as a
hard failure by the engine.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Protocol

from notewright.prompts.context import PromptContext

Purpose = Literal["interview", "writing", "rewrite"]
ChatMessage = Dict[str, str]


@dataclass(frozen=True)
class GenerationRequest:
    purpose: Purpose
    system_prompt: str
    messages: List[ChatMessage]
    context: PromptContext
    prompt_version: str = ""
    # Writing only: the dialogue the single-shot prompt was flattened from.
    transcript: List[ChatMessage] = field(default_factory=list)
    # Rewrite only: the article being restyled.
    source_title: str = ""
    source_content: str = ""


class TextGenerator(Protocol):
    name: str

    async def generate(self, request: GenerationRequest) -> str:
        ...
