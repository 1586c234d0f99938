"""Shared test fixtures for skillsmith."""

from __future__ import annotations

from pathlib import Path

import pytest

from skillsmith.config import reset_settings

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures; importable by test files)
# ---------------------------------------------------------------------------

# Cached property names that must be set via __dict__ (not model_construct).
_CACHED_PROPERTY_NAMES = frozenset({"skills_dir", "archived_dir"})


def make_settings(**overrides):
    """Create a Settings object with sensible defaults for testing.

    Accepts both model fields (skills, logging) and cached property
    overrides (skills_dir, archived_dir).

    Usage::

        s = make_settings(skills_dir=tmp_path / "skills")
        s = make_settings(skills=SkillsConfig(operation_timeout=0.5))
    """
    from skillsmith.config import LoggingConfig, Settings, SkillsConfig

    cached = {k: overrides.pop(k) for k in list(overrides) if k in _CACHED_PROPERTY_NAMES}

    defaults = {
        "skills": SkillsConfig(),
        "logging": LoggingConfig(),
    }
    defaults.update(overrides)

    s = Settings.model_construct(**defaults)
    for key, value in cached.items():
        s.__dict__[key] = value
    return s


def write_skill(root: Path, dirname: str, name: str | None = None, description: str = "") -> Path:
    """Create a minimal skill directory with a SKILL.md under *root*."""
    skill_dir = root / dirname
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "SKILL.md").write_text(
        f"---\nname: {name or dirname}\ndescription: {description}\n---\n\n# {name or dirname}\n"
    )
    return skill_dir


def find_node(tree, rel_path: str):
    """Return the node at *rel_path* (forward slashes) under *tree*, or None."""
    node = tree
    for part in [p for p in rel_path.split("/") if p and p != "."]:
        if node is None or node.children is None:
            return None
        node = next((c for c in node.children if c.name == part), None)
    return node


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch, tmp_path):
    """Keep config.toml/.env lookups and the settings singleton test-local."""
    monkeypatch.chdir(tmp_path)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def skills_dir(tmp_path: Path) -> Path:
    d = tmp_path / "skills"
    d.mkdir()
    return d


@pytest.fixture
def manager(skills_dir: Path):
    from skillsmith.manager import SkillsManagementManager

    return SkillsManagementManager(skills_dir, settings=make_settings())
