"""Volume name generation."""

from __future__ import annotations

import re
import secrets

VOLUME_PREFIX = "devcontainer"

# Used when nothing of the project name survives sanitizing, so the middle
# segment of ``devcontainer-<segment>-<hex>`` is never empty.
_FALLBACK_SEGMENT = "workspace"
_MAX_SEGMENT = 48

_SEPARATORS = re.compile(r"[\s_]+")
_DISALLOWED = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUN = re.compile(r"-{2,}")


def sanitize_project_name(project_name: str) -> str:
    """Lower-case, map spaces/underscores to hyphens, drop everything else."""
    s = _SEPARATORS.sub("-", project_name.lower())
    s = _DISALLOWED.sub("", s)
    s = _HYPHEN_RUN.sub("-", s)
    return s[:_MAX_SEGMENT].strip("-")


def generate_volume_name(project_name: str) -> str:
    """Return ``devcontainer-<sanitized>-<8 hex>``.

    The suffix is random, not derived from the name, so repeated spawns of
    the same project never collide.
    """
    segment = sanitize_project_name(project_name) or _FALLBACK_SEGMENT
    return f"{VOLUME_PREFIX}-{segment}-{secrets.token_hex(4)}"
