"""Lifecycle management for directory-backed agent skills.

Create, rename, edit, archive, restore and purge skills under a skills root,
with every mutation serialized through one queue and every per-skill file
access confined to that skill's directory.

Usage:
    from skillsmith import CreateSkillOptions, SkillsManagementManager

    manager = SkillsManagementManager("skills")
    await manager.create_skill("demo", CreateSkillOptions(name="demo", description="..."))
    await manager.delete_skill("demo")  # moves it to skills/.archived/
"""

from skillsmith.errors import (
    ArchivedSkillError,
    BoundaryViolationError,
    ExecutionError,
    OperationTimeoutError,
    SkillConflictError,
    SkillError,
    SkillNotFoundError,
    SkillValidationError,
)
from skillsmith.file_manager import SandboxFileManager
from skillsmith.loader import SkillsLoader
from skillsmith.manager import SkillsManagementManager
from skillsmith.operation_queue import (
    OperationQueue,
    OperationStatus,
    OperationTask,
    OperationType,
    QueueStatus,
)
from skillsmith.sandbox import SandboxConfig, SandboxFactory
from skillsmith.types import (
    ArchivedSkillInfo,
    CreateSkillOptions,
    FileTreeNode,
    SkillContent,
    SkillDetail,
    SkillInfo,
    SkillMetadata,
)
from skillsmith.xml_generator import generate_skills_metadata_xml

__all__ = [
    "ArchivedSkillError",
    "ArchivedSkillInfo",
    "BoundaryViolationError",
    "CreateSkillOptions",
    "ExecutionError",
    "FileTreeNode",
    "OperationQueue",
    "OperationStatus",
    "OperationTask",
    "OperationTimeoutError",
    "OperationType",
    "QueueStatus",
    "SandboxConfig",
    "SandboxFactory",
    "SandboxFileManager",
    "SkillConflictError",
    "SkillContent",
    "SkillDetail",
    "SkillError",
    "SkillInfo",
    "SkillMetadata",
    "SkillNotFoundError",
    "SkillValidationError",
    "SkillsLoader",
    "SkillsManagementManager",
    "generate_skills_metadata_xml",
]
