"""Data models for skillsmith."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal


@dataclass
class SkillMetadata:
    name: str
    description: str
    path: Path  # SKILL.md
    base_dir: Path  # Skill root directory


@dataclass
class SkillContent:
    metadata: SkillMetadata
    content: str  # Raw SKILL.md text
    references: list[str] = field(default_factory=list)
    scripts: list[str] = field(default_factory=list)
    assets: list[str] = field(default_factory=list)


@dataclass
class CreateSkillOptions:
    name: str
    description: str = ""


@dataclass
class FileTreeNode:
    name: str
    type: Literal["file", "dir"]
    path: str  # Relative to skill root, forward slashes
    size: int
    modified_time: str  # ISO 8601, UTC
    children: list[FileTreeNode] | None = None  # Only set for directories


@dataclass
class SkillInfo:
    name: str
    description: str
    path: Path
    base_dir: Path
    created_at: datetime | None = None  # st_birthtime, or st_ctime on Linux
    updated_at: datetime | None = None  # SKILL.md mtime


@dataclass
class SkillDetail(SkillInfo):
    files: FileTreeNode | None = None
    references: list[str] = field(default_factory=list)
    scripts: list[str] = field(default_factory=list)
    assets: list[str] = field(default_factory=list)


@dataclass
class ArchivedSkillInfo:
    original_name: str
    archived_name: str  # Directory name: <original>_<timestamp>Z
    archived_path: Path
    archived_at: datetime  # Directory mtime, else the timestamp in the name
