from dataclasses import replace

import pytest

from notewright.core.errors import RegistryInconsistent
from notewright.prompts.context import PromptContext
from notewright.prompts.registry import (
    DEFAULT_REGISTRY,
    CategoryRegistry,
    PromptVersion,
    registry_from_pins,
)


def test_default_registry_points_at_newest() -> None:
    for category in ("interview", "writing"):
        assert DEFAULT_REGISTRY.current(category).id == "v2"
        assert [v.id for v in DEFAULT_REGISTRY.versions(category)] == ["v2", "v1"]


def test_rollback_repoints_without_touching_versions() -> None:
    before = DEFAULT_REGISTRY.versions("interview")
    rolled = DEFAULT_REGISTRY.rollback("interview", "v1")

    assert rolled.current("interview") is DEFAULT_REGISTRY.get_version("interview", "v1")
    assert rolled.versions("interview") == before
    # the original value is untouched and the other category is unaffected
    assert DEFAULT_REGISTRY.current("interview").id == "v2"
    assert rolled.current("writing").id == "v2"


def test_rollback_to_unknown_version_is_rejected() -> None:
    with pytest.raises(ValueError):
        DEFAULT_REGISTRY.rollback("writing", "v99")


def test_unknown_category_is_rejected() -> None:
    with pytest.raises(ValueError):
        DEFAULT_REGISTRY.versions("summary")


def test_dangling_current_pointer_is_reported() -> None:
    broken = replace(
        DEFAULT_REGISTRY,
        interview=CategoryRegistry(current="v9", versions=DEFAULT_REGISTRY.interview.versions),
    )
    with pytest.raises(RegistryInconsistent):
        broken.current("interview")


def test_append_adds_newest_first() -> None:
    v3 = PromptVersion(
        id="v3",
        date="2026-10-01",
        model="gpt-4.1-mini",
        summary="Experimental",
        description="Experimental prompt.",
        build=lambda ctx: f"Write about {ctx.theme_title}",
    )
    staged = DEFAULT_REGISTRY.append("writing", v3)
    assert [v.id for v in staged.versions("writing")] == ["v3", "v2", "v1"]
    assert staged.current("writing").id == "v2"

    live = DEFAULT_REGISTRY.append("writing", v3, make_current=True)
    assert live.current("writing").build(PromptContext(theme_title="Tea")) == "Write about Tea"

    with pytest.raises(ValueError):
        live.append("writing", v3)


def test_pins_apply_rollback() -> None:
    pinned = registry_from_pins(DEFAULT_REGISTRY, interview_version="v1")
    assert pinned.current("interview").id == "v1"
    assert pinned.current("writing").id == "v2"
    assert registry_from_pins(DEFAULT_REGISTRY) is DEFAULT_REGISTRY


def test_templates_render_context() -> None:
    ctx = PromptContext(theme_title="Remote work", theme_description="Two years in", memos=("Quiet mornings",))
    for category in ("interview", "writing"):
        for version in DEFAULT_REGISTRY.versions(category):
            prompt = version.build(ctx)
            assert "Remote work" in prompt


def test_public_dict_hides_builder() -> None:
    public = DEFAULT_REGISTRY.current("writing").to_public_dict()
    assert set(public) == {"id", "date", "model", "summary", "description", "changelog"}
