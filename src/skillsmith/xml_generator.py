"""Render the available-skills block injected into an agent's system prompt."""

from __future__ import annotations

from collections.abc import Iterable
from xml.sax.saxutils import escape

from skillsmith.types import SkillMetadata

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}

_USAGE = """\
When users ask you to perform tasks, check if any of the available skills below can help \
complete the task more effectively. Skills provide specialized capabilities and domain knowledge.

How to use skills:
- Invoke: skills(action="load", skill_name="<skill-name>")
- The skill content will load with detailed instructions on how to complete the task
- Base directory provided in output for resolving bundled resources (references/, scripts/, assets/)

Hot Reload:
- Each time you reload a known skill, it will load the latest state of the skill information
- To load a skill, invoke: skills(action="load", skill_name="<skill-name>")
- The skill content will be loaded with the latest state from the skills directory

Usage notes:
- Only use skills listed in <available_skills> below
- Do not invoke a skill that is already loaded in your context
- Each skill invocation is stateless"""


def escape_xml(text: str) -> str:
    return escape(text, _XML_ENTITIES)


def generate_skills_metadata_xml(skills: Iterable[SkillMetadata]) -> str:
    """Return the ``<skills_system>`` block for *skills*, or ``""`` if there are none."""
    tags = [
        "<skill>\n"
        f"<name>{escape_xml(s.name)}</name>\n"
        f"<description>{escape_xml(s.description)}</description>\n"
        "<location>project</location>\n"
        "</skill>"
        for s in skills
    ]
    if not tags:
        return ""

    skill_tags = "\n\n".join(tags)
    return (
        '\n<skills_system priority="1">\n\n'
        "## Available Skills\n\n"
        "<!-- SKILLS_TABLE_START -->\n"
        f"<usage>\n{_USAGE}\n</usage>\n\n"
        f"<available_skills>\n\n{skill_tags}\n\n</available_skills>\n"
        "<!-- SKILLS_TABLE_END -->\n\n"
        "</skills_system>"
    )
