# notewright/prompts/registry.py
"""
Prompt version registry.

Each category (interview, writing) holds an ordered list of released prompt
versions, newest first, plus one "current" pointer. Versions are appended and
never edited; rolling back means moving the pointer.

Registries are immutable values. The generation engine receives one
explicitly, so a test (or a pinned deployment) can hand it any registry
without touching process-wide state.

Adding a version:
  1. write build_<category>_prompt_vN in the category's template module
  2. append a PromptVersion to DEFAULT_REGISTRY below
  3. point current at the new id (or pin it through settings first)
"""

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Literal, Optional, Tuple

from notewright.core.errors import RegistryInconsistent
from notewright.prompts.context import PromptContext
from notewright.prompts.interview import build_interview_prompt_v1, build_interview_prompt_v2
from notewright.prompts.writing import build_writing_prompt_v1, build_writing_prompt_v2

PromptCategory = Literal["interview", "writing"]
CATEGORIES: Tuple[str, ...] = ("interview", "writing")

TemplateBuilder = Callable[[PromptContext], str]


@dataclass(frozen=True)
class PromptVersion:
    id: str
    date: str
    model: str
    summary: str
    description: str
    build: TemplateBuilder = field(repr=False, compare=False)
    changelog: Optional[str] = None

    def to_public_dict(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.id,
            "date": self.date,
            "model": self.model,
            "summary": self.summary,
            "description": self.description,
            "changelog": self.changelog,
        }


@dataclass(frozen=True)
class CategoryRegistry:
    current: str
    versions: Tuple[PromptVersion, ...]

    def find(self, version_id: str) -> Optional[PromptVersion]:
        for v in self.versions:
            if v.id == version_id:
                return v
        return None


@dataclass(frozen=True)
class PromptRegistry:
    interview: CategoryRegistry
    writing: CategoryRegistry

    def _category(self, category: str) -> CategoryRegistry:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown prompt category: {category!r}")
        return getattr(self, category)

    def versions(self, category: str) -> List[PromptVersion]:
        """All versions of a category, newest first."""
        return list(self._category(category).versions)

    def current(self, category: str) -> PromptVersion:
        reg = self._category(category)
        found = reg.find(reg.current)
        if found is None:
            raise RegistryInconsistent(f"Version {reg.current} not found for {category}")
        return found

    def get_version(self, category: str, version_id: str) -> Optional[PromptVersion]:
        return self._category(category).find(version_id)

    def rollback(self, category: str, version_id: str) -> "PromptRegistry":
        """Return a registry whose current pointer for category is version_id."""
        reg = self._category(category)
        if reg.find(version_id) is None:
            raise ValueError(f"Cannot point {category} at unknown version {version_id!r}")
        return replace(self, **{category: replace(reg, current=version_id)})

    def append(self, category: str, version: PromptVersion, make_current: bool = False) -> "PromptRegistry":
        reg = self._category(category)
        if reg.find(version.id) is not None:
            raise ValueError(f"Version {version.id!r} already exists for {category}")
        updated = CategoryRegistry(
            current=version.id if make_current else reg.current,
            versions=(version,) + reg.versions,
        )
        return replace(self, **{category: updated})


DEFAULT_REGISTRY = PromptRegistry(
    interview=CategoryRegistry(
        current="v2",
        versions=(
            PromptVersion(
                id="v2",
                date="2026-02-23",
                model="gpt-4.1-mini",
                summary="Draws out first-hand experience, concrete episodes and failures.",
                description=(
                    "Interview prompt tuned for readable first-hand content.\n"
                    "- Prioritises first-hand information and lived experience\n"
                    "- Digs into concrete episodes, failures and lessons\n"
                    "- Tracks how feelings and opinions changed over time\n"
                    "- Follows up on abstract answers to raise their resolution\n"
                    "- Scores readiness by the quality of the material"
                ),
                build=build_interview_prompt_v2,
                changelog=(
                    "Changes from v1:\n"
                    "- Added 'material to draw out' and 'directions to avoid'\n"
                    "- Added a question flow guide\n"
                    "- Readiness is scored by material quality, not turn count"
                ),
            ),
            PromptVersion(
                id="v1",
                date="2026-02-19",
                model="gpt-4.1-mini",
                summary="A professional interviewer asks one question at a time, starting from the notes.",
                description=(
                    "The model interviews the user one question at a time.\n"
                    "- One question per turn\n"
                    "- Empathetic acknowledgements between questions\n"
                    "- Uses the user's notes to target questions\n"
                    "- Reports readiness on a 0-80 scale\n"
                    "- Supports skipping a question"
                ),
                build=build_interview_prompt_v1,
            ),
        ),
    ),
    writing=CategoryRegistry(
        current="v2",
        versions=(
            PromptVersion(
                id="v2",
                date="2026-02-23",
                model="gpt-4.1-mini",
                summary="Structured article built on first-hand information.",
                description=(
                    "Article prompt tuned for readable first-hand content.\n"
                    "- Lived experience is the backbone of the article\n"
                    "- Opinions and facts are kept apart\n"
                    "- Clear issue, self-contained text\n"
                    "- Avoids clickbait and generic restatements"
                ),
                build=build_writing_prompt_v2,
                changelog=(
                    "Changes from v1:\n"
                    "- Added 'what to emphasise' and 'patterns to avoid'\n"
                    "- Added a structure guide and a silent quality checklist"
                ),
            ),
            PromptVersion(
                id="v1",
                date="2026-02-19",
                model="gpt-4.1-mini",
                summary="Rebuilds the interview into an easy-to-read article.",
                description=(
                    "The model turns the interview material into a publishable article.\n"
                    "- Natural article instead of Q&A format\n"
                    "- Selectable first-person pronoun and register\n"
                    "- Target length from 100 to 50,000 characters\n"
                    "- Written as a sequel when reference articles exist"
                ),
                build=build_writing_prompt_v1,
            ),
        ),
    ),
)


def registry_from_pins(
    base: PromptRegistry,
    interview_version: Optional[str] = None,
    writing_version: Optional[str] = None,
) -> PromptRegistry:
    """Apply configured version pins to a registry (startup rollback)."""
    registry = base
    if interview_version:
        registry = registry.rollback("interview", interview_version)
    if writing_version:
        registry = registry.rollback("writing", writing_version)
    return registry
