"""Per-platform renderers for agents, commands and skills.

Every renderer takes an artifact and the target platform and returns the file
content to write. Markdown outputs carry YAML frontmatter built from the
artifact's sidecar metadata; Gemini commands are TOML.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import yaml

from agentsync.artifacts.models import ARGUMENTS_PLACEHOLDER

if TYPE_CHECKING:
    from agentsync.artifacts.models import Artifact, Platform

_ARGUMENT_LINE_RE = re.compile(r"^.*\$ARGUMENTS.*$\n?", re.MULTILINE)

# Source model names that Cursor does not understand.
CURSOR_MODEL_MAP = {
    "haiku": "fast",
    "sonnet": "inherit",
    "opus": "inherit",
}


def serialize_frontmatter(meta: Mapping[str, Any]) -> str:
    """Serialize metadata as a fenced YAML frontmatter block.

    Keys keep insertion order and long values are never wrapped.
    """
    body = yaml.safe_dump(
        dict(meta),
        sort_keys=False,
        width=float("inf"),
        default_flow_style=False,
        allow_unicode=True,
    )
    return f"---\n{body}---\n"


def transform_arguments(content: str, placeholder: str | None) -> str:
    """Rewrite ``$ARGUMENTS`` to a platform's placeholder.

    A placeholder of None removes every line that mentions ``$ARGUMENTS``,
    since those lines make no sense on platforms without argument support.
    """
    if placeholder is None:
        return _ARGUMENT_LINE_RE.sub("", content)
    if placeholder == ARGUMENTS_PLACEHOLDER:
        return content
    return content.replace(ARGUMENTS_PLACEHOLDER, placeholder)


def map_model_to_cursor(model: str) -> str:
    """Map a source model name to Cursor's model names; unknown names pass through."""
    return CURSOR_MODEL_MAP.get(model, model)


def _pick(meta: Mapping[str, Any], *keys: str) -> dict[str, Any]:
    return {key: meta[key] for key in keys if meta.get(key)}


def render_claude_agent(artifact: Artifact, platform: Platform) -> str:
    meta = artifact.meta
    frontmatter = {"name": meta.get("name"), "description": meta.get("description")}
    frontmatter.update(_pick(meta, "model"))
    return serialize_frontmatter(frontmatter) + artifact.content


def render_description_agent(artifact: Artifact, platform: Platform) -> str:
    """Agent with description-only frontmatter.

    OpenCode and Copilot derive the agent name from the file name.
    """
    frontmatter = {"description": artifact.meta.get("description") or ""}
    return serialize_frontmatter(frontmatter) + artifact.content


def render_cursor_agent(artifact: Artifact, platform: Platform) -> str:
    meta = artifact.meta
    frontmatter = _pick(meta, "name", "description")
    if meta.get("model"):
        frontmatter["model"] = map_model_to_cursor(meta["model"])
    # Cursor-only flags pass through whenever they are set, even to false.
    for key in ("readonly", "is_background"):
        if key in meta:
            frontmatter[key] = meta[key]
    return serialize_frontmatter(frontmatter) + artifact.content


def render_markdown_command(artifact: Artifact, platform: Platform) -> str:
    frontmatter = _pick(artifact.meta, "description", "argument-hint")
    content = transform_arguments(artifact.content, platform.arguments_placeholder)
    return serialize_frontmatter(frontmatter) + content


def render_plain_command(artifact: Artifact, platform: Platform) -> str:
    """Command as plain markdown without frontmatter."""
    return transform_arguments(artifact.content, platform.arguments_placeholder)


def render_skill(artifact: Artifact, platform: Platform) -> str:
    frontmatter = _pick(artifact.meta, "name", "description")
    return serialize_frontmatter(frontmatter) + artifact.content


def toml_basic_string(value: str) -> str:
    # JSON string escapes are a subset of TOML basic string escapes.
    return json.dumps(value, ensure_ascii=False)


def toml_multiline_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"""', '""\\"')
    return f'"""\n{escaped}"""'


def render_toml_command(artifact: Artifact, platform: Platform) -> str:
    """Command as TOML with ``description`` and a multi-line ``prompt``."""
    lines = []
    description = artifact.meta.get("description")
    if description:
        lines.append(f"description = {toml_basic_string(description)}")

    prompt = transform_arguments(artifact.content, platform.arguments_placeholder).strip()
    if prompt:
        lines.append(f"prompt = {toml_multiline_string(prompt)}")

    if not lines:
        return ""
    return "\n".join(lines) + "\n"
