"""Registry of supported downstream agent platforms."""

from __future__ import annotations

from agentsync.artifacts.models import Platform
from agentsync.artifacts.render import (
    render_claude_agent,
    render_cursor_agent,
    render_description_agent,
    render_markdown_command,
    render_plain_command,
    render_skill,
    render_toml_command,
)

CLAUDE = Platform(
    name="claude",
    output_dir="nx-claude-plugin",
    agents_dir="agents",
    render_agent=render_claude_agent,
    commands_dir="commands",
    commands_ext=".md",
    render_command=render_markdown_command,
    render_skill=render_skill,
)

OPENCODE = Platform(
    name="opencode",
    output_dir=".opencode",
    agents_dir="agents",
    render_agent=render_description_agent,
    commands_dir="commands",
    commands_ext=".md",
    render_command=render_markdown_command,
    render_skill=render_skill,
)

COPILOT = Platform(
    name="copilot",
    output_dir=".github",
    agents_dir="agents",
    agents_ext=".agent.md",
    render_agent=render_description_agent,
    commands_dir="prompts",
    commands_ext=".prompt.md",
    render_command=render_markdown_command,
    render_skill=render_skill,
    arguments_placeholder="${input:args}",
)

CURSOR = Platform(
    name="cursor",
    output_dir=".cursor",
    agents_dir="agents",
    render_agent=render_cursor_agent,
    commands_dir="commands",
    commands_ext=".md",
    render_command=render_plain_command,
    render_skill=render_skill,
    arguments_placeholder=None,
)

# Gemini has no agents and expects a lowercase skill file.
GEMINI = Platform(
    name="gemini",
    output_dir=".gemini",
    commands_dir="commands",
    commands_ext=".toml",
    render_command=render_toml_command,
    render_skill=render_skill,
    skill_file="skill.md",
    arguments_placeholder="{{args}}",
)

PLATFORMS: dict[str, Platform] = {
    platform.name: platform for platform in (CLAUDE, OPENCODE, COPILOT, CURSOR, GEMINI)
}


def get_platforms(names: list[str] | None = None) -> list[Platform]:
    """Look up platforms by name, keeping the requested order.

    Args:
        names: Platform names; None selects every platform.

    Raises:
        KeyError: If a name is not a known platform.
    """
    if names is None:
        return list(PLATFORMS.values())
    return [PLATFORMS[name] for name in names]
