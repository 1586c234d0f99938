"""Read-only skill discovery.

Finds ``SKILL.md`` manifests anywhere under the skills root and parses their
front-matter. Nothing is cached: each ``scan()`` or ``load()`` reads the
current disk state, so edits show up on the next call.

Manifest format::

    ---
    name: demo
    description: What the skill does
    ---

    Free-form body...
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from skillsmith.logger import logger as _default_logger
from skillsmith.types import SkillContent, SkillMetadata

MANIFEST_NAME = "SKILL.md"
RESOURCE_DIRS = ("references", "scripts", "assets")


def parse_front_matter(text: str) -> dict[str, str] | None:
    """Parse the ``---``-delimited block at the top of *text*.

    Uses simple line-based ``key: value`` parsing (no YAML dependency).
    Returns None when the block is missing or never closed.
    """
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        return None

    fields: dict[str, str] = {}
    for line in lines[1:]:
        stripped = line.strip()
        if stripped == "---":
            return fields
        if ":" not in stripped or stripped.startswith("#"):
            continue
        key, value = stripped.split(":", 1)
        fields[key.strip()] = value.strip().strip("\"'")
    return None


class SkillsLoader:
    def __init__(self, skills_dir: str | Path, *, logger: Any = None) -> None:
        self.skills_dir = Path(skills_dir).resolve()
        self._log = logger or _default_logger

    def scan(self) -> list[SkillMetadata]:
        """Return metadata for every valid manifest, sorted by path.

        Manifests without a closed front-matter block or a ``name`` are skipped.
        """
        if not self.skills_dir.is_dir():
            return []

        skills: list[SkillMetadata] = []
        for manifest in sorted(self.skills_dir.rglob(MANIFEST_NAME)):
            if not manifest.is_file():
                continue
            meta = self._read_metadata(manifest)
            if meta is not None:
                skills.append(meta)
        return skills

    def load(self, name: str) -> SkillContent | None:
        """Load the skill whose manifest declares *name*.

        If several manifests share the name (an online skill and its archived
        copies), the one whose directory is also called *name* wins.
        """
        matches = [m for m in self.scan() if m.name == name]
        if not matches:
            return None
        meta = next((m for m in matches if m.base_dir.name == name), matches[0])

        try:
            content = meta.path.read_text(encoding="utf-8")
        except OSError as exc:
            # Raced with a move or delete after scan()
            self._log.debug("Skill manifest vanished", skill=name, err=str(exc))
            return None

        return SkillContent(
            metadata=meta,
            content=content,
            **{sub: _list_resource_files(meta.base_dir / sub) for sub in RESOURCE_DIRS},
        )

    def _read_metadata(self, manifest: Path) -> SkillMetadata | None:
        try:
            text = manifest.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            self._log.debug("Unreadable skill manifest", path=str(manifest), err=str(exc))
            return None

        fields = parse_front_matter(text)
        if not fields or not fields.get("name"):
            self._log.debug("Skipping manifest without front-matter name", path=str(manifest))
            return None

        return SkillMetadata(
            name=fields["name"],
            description=fields.get("description", ""),
            path=manifest,
            base_dir=manifest.parent,
        )


def _list_resource_files(directory: Path) -> list[str]:
    """Relative posix paths of the non-hidden files under *directory*."""
    if not directory.is_dir():
        return []
    return sorted(
        p.relative_to(directory).as_posix()
        for p in directory.rglob("*")
        if p.is_file() and not any(part.startswith(".") for part in p.relative_to(directory).parts)
    )
