"""Tests for skill discovery and front-matter parsing."""

from __future__ import annotations

from pathlib import Path

from conftest import write_skill

from skillsmith.loader import SkillsLoader, parse_front_matter


class TestParseFrontMatter:
    def test_basic(self):
        text = "---\nname: demo\ndescription: Does things\n---\n\nBody"
        assert parse_front_matter(text) == {"name": "demo", "description": "Does things"}

    def test_strips_quotes_and_keeps_colons_in_values(self):
        text = "---\nname: \"demo\"\ndescription: 'Step: one'\n---\n"
        assert parse_front_matter(text) == {"name": "demo", "description": "Step: one"}

    def test_ignores_comments_and_blank_lines(self):
        text = "---\n# comment\n\nname: demo\n---\n"
        assert parse_front_matter(text) == {"name": "demo"}

    def test_missing_opening_delimiter(self):
        assert parse_front_matter("name: demo\n---\n") is None

    def test_unclosed_block(self):
        assert parse_front_matter("---\nname: demo\n") is None

    def test_crlf(self):
        assert parse_front_matter("---\r\nname: demo\r\n---\r\n") == {"name": "demo"}


class TestScan:
    def test_missing_root_returns_empty(self, tmp_path: Path):
        assert SkillsLoader(tmp_path / "nope").scan() == []

    def test_finds_skills_sorted_by_path(self, skills_dir: Path):
        write_skill(skills_dir, "beta", description="B")
        write_skill(skills_dir, "alpha", description="A")

        skills = SkillsLoader(skills_dir).scan()

        assert [s.name for s in skills] == ["alpha", "beta"]
        assert skills[0].description == "A"
        assert skills[0].base_dir == (skills_dir / "alpha").resolve()
        assert skills[0].path.name == "SKILL.md"

    def test_skips_invalid_manifests(self, skills_dir: Path):
        write_skill(skills_dir, "good")
        bad = skills_dir / "bad"
        bad.mkdir()
        (bad / "SKILL.md").write_text("no front matter here")
        nameless = skills_dir / "nameless"
        nameless.mkdir()
        (nameless / "SKILL.md").write_text("---\ndescription: x\n---\n")

        assert [s.name for s in SkillsLoader(skills_dir).scan()] == ["good"]

    def test_includes_archived_copies(self, skills_dir: Path):
        write_skill(skills_dir / ".archived", "demo_2026-01-15T05-05-01-350Z", name="demo")

        skills = SkillsLoader(skills_dir).scan()

        assert [s.name for s in skills] == ["demo"]
        assert ".archived" in skills[0].base_dir.parts

    def test_sees_new_skills_without_reload(self, skills_dir: Path):
        loader = SkillsLoader(skills_dir)
        assert loader.scan() == []

        write_skill(skills_dir, "fresh")

        assert [s.name for s in loader.scan()] == ["fresh"]


class TestLoad:
    def test_unknown_returns_none(self, skills_dir: Path):
        assert SkillsLoader(skills_dir).load("ghost") is None

    def test_loads_content_and_resources(self, skills_dir: Path):
        d = write_skill(skills_dir, "demo", description="Demo skill")
        (d / "references").mkdir()
        (d / "references" / "guide.md").write_text("g")
        (d / "references" / "nested").mkdir()
        (d / "references" / "nested" / "deep.md").write_text("d")
        (d / "scripts").mkdir()
        (d / "scripts" / "run.sh").write_text("r")
        (d / "scripts" / ".gitkeep").write_text("")

        skill = SkillsLoader(skills_dir).load("demo")

        assert skill is not None
        assert skill.metadata.description == "Demo skill"
        assert skill.content.startswith("---\nname: demo")
        assert skill.references == ["guide.md", "nested/deep.md"]
        assert skill.scripts == ["run.sh"]
        assert skill.assets == []

    def test_prefers_online_copy_over_archived(self, skills_dir: Path):
        write_skill(skills_dir / ".archived", "demo_2026-01-15T05-05-01-350Z", name="demo")
        write_skill(skills_dir, "demo")

        skill = SkillsLoader(skills_dir).load("demo")

        assert skill is not None
        assert skill.metadata.base_dir == (skills_dir / "demo").resolve()

    def test_falls_back_to_archived_copy(self, skills_dir: Path):
        write_skill(skills_dir / ".archived", "demo_2026-01-15T05-05-01-350Z", name="demo")

        skill = SkillsLoader(skills_dir).load("demo")

        assert skill is not None
        assert skill.metadata.base_dir.parent.name == ".archived"
