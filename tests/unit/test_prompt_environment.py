"""Prompt template loading and user overrides."""

import pytest
from jinja2 import UndefinedError

from focusgroup.models import SalesPitch
from focusgroup.prompt_templates import (
    PACKAGE_PROMPTS_DIR,
    create_prompt_environment,
    render_prompt,
)

TEMPLATES = (
    "analysis.jinja",
    "casting.jinja",
    "decision.jinja",
    "discussion.jinja",
    "interview.jinja",
    "pitch.jinja",
    "pivot.jinja",
    "reaction.jinja",
    "research.jinja",
    "review.jinja",
    "sales_answer.jinja",
)


@pytest.mark.parametrize("name", TEMPLATES)
def test_every_agent_template_ships_with_the_package(name):
    assert (PACKAGE_PROMPTS_DIR / name).is_file()


def test_override_directory_wins_and_falls_back(tmp_path):
    (tmp_path / "pitch.jinja").write_text("Custom pitch for {{ product.name }}")
    env = create_prompt_environment(tmp_path)

    assert render_prompt("pitch.jinja", env=env, product={"name": "Pillow"}, has_image=False) == (
        "Custom pitch for Pillow"
    )
    # Not overridden, so the packaged template is used.
    rendered = render_prompt("sales_answer.jinja", env=env, question="Price?", product={"name": "Pillow"})
    assert "Price?" in rendered


def test_missing_override_directory_uses_package_prompts(tmp_path):
    env = create_prompt_environment(tmp_path / "missing")
    assert env.loader.searchpath == [str(PACKAGE_PROMPTS_DIR)]


def test_missing_variables_raise():
    with pytest.raises(UndefinedError):
        render_prompt("pitch.jinja")


def test_pretty_json_filter_dumps_models_without_escaping(tmp_path):
    (tmp_path / "probe.jinja").write_text("{{ pitch | pretty_json }}")
    env = create_prompt_environment(tmp_path)
    pitch = SalesPitch(catch_copy="ぐっすり <眠れる>", description="d", key_benefits=[])

    rendered = render_prompt("probe.jinja", env=env, pitch=pitch)

    assert '"catch_copy": "ぐっすり <眠れる>"' in rendered
