# notewright/prompts/writing.py
"""
Article synthesis and rewrite prompt templates.
"""

from typing import List, Dict

from notewright.prompts.context import PromptContext, render_theme_block

INTERVIEWER_LABEL = "Interviewer"
RESPONDENT_LABEL = "Respondent"


def format_transcript(messages: List[Dict[str, str]]) -> str:
    """Flatten a dialogue into labelled paragraphs for a single-shot prompt."""
    chunks = []
    for m in messages:
        label = INTERVIEWER_LABEL if m.get("role") == "assistant" else RESPONDENT_LABEL
        chunks.append(f"{label}: {m.get('content', '')}")
    return "\n\n".join(chunks)


def synthesis_request(messages: List[Dict[str, str]]) -> str:
    return (
        "Write the article based on the following interview.\n\n"
        f"{format_transcript(messages)}"
    )


def _style_label(ctx: PromptContext) -> str:
    if ctx.is_plain_style:
        return "a plain, assertive register (no polite sentence endings)"
    return "a polite, friendly register"


def _reference_section(ctx: PromptContext) -> str:
    if not ctx.reference_articles:
        return ""
    parts = [
        "\n\n## Reference articles (background)",
        "The user already wrote the articles below on a related theme. Avoid repeating "
        "what they already say and write the new article so it reads naturally as a "
        "follow-up. You may refer to them as \"the previous article\".",
    ]
    for i, ref in enumerate(ctx.reference_articles, start=1):
        parts.append(f"\n### Existing article {i}: \"{ref.title}\"\n{ref.content}")
    return "\n".join(parts)


def _style_reference_section(ctx: PromptContext) -> str:
    if not ctx.style_reference_text:
        return ""
    return (
        "\n\n## Style reference (tone only)\n"
        "Match the tone, rhythm and sentence endings of the sample below. "
        "Never copy its content or phrases.\n---\n"
        f"{ctx.style_reference_text}\n---"
    )


def build_writing_prompt_v1(ctx: PromptContext) -> str:
    theme = render_theme_block(ctx, "Reference notes")
    return f"""You are a professional writer. Turn the interview below into an article the user can publish.

## Article theme
{theme}{_reference_section(ctx)}{_style_reference_section(ctx)}

## Writing rules
1. Put the article title on the first line in the form "# Title". Do not reuse the theme title as is; choose an engaging title that fits the content.
2. Write in an approachable way readers can relate to.
3. Use line breaks generously and separate paragraphs with a blank line.
4. Organise the article with "##" headings.
5. Aim for about {ctx.target_length:,} characters.
6. Do not keep the question/answer format; rebuild it as a natural article.
7. Use {_style_label(ctx)}.
8. Refer to the author as "{ctx.effective_pronoun}" and never mix in another first-person form.
9. Only use this markdown: #, ##, ###, **bold**, line breaks.
10. If reference articles exist, avoid overlap and write it as a continuation.
11. Output the article only. Never output labels such as "Title:", "Tone:" or "Structure:"."""


def build_writing_prompt_v2(ctx: PromptContext) -> str:
    theme = render_theme_block(ctx, "Reference notes")
    return f"""You are a professional writer. Turn the interview below into an article built on first-hand experience.

## Article theme
{theme}{_reference_section(ctx)}{_style_reference_section(ctx)}

## What to emphasise
- First-hand information and lived experience are the backbone of the article.
- Keep opinions and facts clearly separated.
- Make the issue clear; the text must stand on its own.
- Be candid about failures and trial and error.

## Patterns to avoid
- Clickbait phrasing and sweeping assertions.
- Restating generic knowledge the reader already has.
- Inventing episodes that do not appear in the interview.

## Structure guide
1. First line: "# Title", a specific title that fits the content (not the theme title as is).
2. An opening that states the issue.
3. Body sections under "##" headings, built around the concrete episodes.
4. A closing with what changed and what the reader can take away.

## Writing rules
- Aim for about {ctx.target_length:,} characters.
- Use {_style_label(ctx)}.
- Refer to the author as "{ctx.effective_pronoun}" and never mix in another first-person form.
- Only use this markdown: #, ##, ###, **bold**, line breaks.
- Output the article only. Never output labels such as "Title:", "Tone:", "Structure:" or "Body Paragraph 1:".

## Quality checklist (check silently, do not print)
- Is every claim traceable to the interview?
- Would a stranger understand the issue from the first section?"""


def build_rewrite_prompt(title: str, content: str, style_text: str) -> str:
    return f"""You are a professional writer. Rewrite the existing article below in the tone, rhythm and atmosphere of the style reference.

## Rewrite rules
1. Keep the article's information, content and structure as intact as possible.
2. Change only the tone, rhythm and sentence endings to match the style reference.
3. Put the title on the first line in the form "# Title" (you may adjust it to fit).
4. Only use this markdown: #, ##, ###, **bold**, line breaks.
5. Never copy the content or phrases of the style reference. Use it for style only.
6. Output the article only, without labels such as "Title:" or "Tone:".

## Style reference (tone only)
---
{style_text}
---

## Article to rewrite
---
# {title}

{content}
---"""


REWRITE_REQUEST = "Rewrite the article above in the tone of the style reference."
