"""Skill lifecycle management: create, rename, edit, archive, restore, purge.

All mutations are wrapped in an ``OperationTask`` and funnelled through one
``OperationQueue``, so they run strictly one at a time. The caller waits on
the task's completion signal for at most ``operation_timeout`` seconds; a
timeout is reported to the caller but the operation keeps running.

Read-only queries (listing, details, file trees) skip the queue and read the
disk directly. They can observe a skill mid-move, e.g. briefly absent from
both the online and the archived listing while it is being archived. That
window is accepted rather than locked away.

Layout::

    <skills_dir>/<name>/{SKILL.md, references/, scripts/, assets/}
    <archived_dir>/<name>_<YYYY-MM-DDTHH-MM-SS-mmm>Z/   (default: <skills_dir>/.archived)

A name can have at most one online skill. An archived copy with the same
original name blocks ``create_skill`` for that name until it is restored or
purged. ``rename_skill`` only checks the online namespace for the new name.
"""

from __future__ import annotations

import os
import re
import shutil
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from skillsmith.archive import make_archived_name, parse_archived_name, strip_archive_suffix
from skillsmith.config import Settings, get_settings
from skillsmith.errors import (
    ArchivedSkillError,
    OperationTimeoutError,
    SkillConflictError,
    SkillNotFoundError,
    SkillValidationError,
)
from skillsmith.file_manager import SandboxFileManager
from skillsmith.loader import MANIFEST_NAME, RESOURCE_DIRS, SkillsLoader
from skillsmith.logger import logger as _default_logger
from skillsmith.operation_queue import OperationQueue, OperationTask, OperationType, QueueStatus
from skillsmith.sandbox import SandboxFactory
from skillsmith.types import (
    ArchivedSkillInfo,
    CreateSkillOptions,
    FileTreeNode,
    SkillContent,
    SkillDetail,
    SkillInfo,
)
from skillsmith.utils import stat_times

_SKILL_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_MAX_SKILL_NAME_LEN = 50
_MANIFEST_NAME_LINE_RE = re.compile(rb"^name:[ \t]*\S[^\r\n]*", re.MULTILINE)


def is_valid_skill_name(name: str) -> bool:
    return 0 < len(name) <= _MAX_SKILL_NAME_LEN and bool(_SKILL_NAME_RE.match(name))


def _is_within(path: Path, root: Path) -> bool:
    """True if *path* is *root* or below it, compared after resolving both."""
    resolved, root = path.resolve(), root.resolve()
    return resolved == root or resolved.is_relative_to(root)


def _check_relative_file_path(file_path: str) -> str:
    """Normalize an edit target and reject traversal or absolute paths.

    The sandbox performs its own check; this one also covers edits that
    bypass the sandbox.
    """
    if not file_path or file_path[:1] in ("/", "\\") or os.path.isabs(file_path):
        raise SkillValidationError(f"Invalid file path: {file_path}")
    normalized = os.path.normpath(file_path).replace("\\", "/")
    if normalized == "." or normalized.split("/", 1)[0] == "..":
        raise SkillValidationError(f"Invalid file path: {file_path}")
    return normalized


def _check_archived_name(archived_name: str) -> None:
    if (
        not archived_name
        or archived_name in (".", "..")
        or "/" in archived_name
        or "\\" in archived_name
    ):
        raise SkillValidationError(f"Invalid archived skill name: {archived_name}")


def render_manifest(name: str, options: CreateSkillOptions) -> str:
    """Generate the SKILL.md for a freshly created skill."""
    # Front-matter values are single-line
    description = " ".join(options.description.split())
    title = options.name or name
    return f"""---
name: {name}
description: {description}
---

# {title}

This is a custom skill created for {title}.

## Usage

Describe how to use this skill here.

## Configuration

Add any configuration details here.
"""


class SkillsManagementManager:
    """Single entry point for mutating a directory of skills.

    Owns write access to both the skills root and the archive root. Nothing
    else should rename or remove skill directories while a manager is live.
    """

    def __init__(
        self,
        skills_dir: str | Path | None = None,
        sandbox_factory: SandboxFactory | None = None,
        archived_dir: str | Path | None = None,
        *,
        operation_timeout: float | None = None,
        use_sandbox: bool | None = None,
        settings: Settings | None = None,
        logger: Any = None,
    ) -> None:
        s = settings or get_settings()
        self._log = logger or _default_logger

        if skills_dir is not None:
            self.skills_dir = Path(skills_dir).resolve()
            default_archive = self.skills_dir / ".archived"
        else:
            self.skills_dir = s.skills_dir
            default_archive = s.archived_dir
        self.archived_dir = Path(archived_dir).resolve() if archived_dir else default_archive

        self.operation_timeout = operation_timeout or s.skills.operation_timeout
        self.use_sandbox = s.skills.use_sandbox if use_sandbox is None else use_sandbox

        self.loader = SkillsLoader(self.skills_dir, logger=self._log)
        self._queue = OperationQueue(logger=self._log)
        self._files = SandboxFileManager(
            sandbox_factory,
            delete_timeout_ms=s.skills.delete_timeout_ms,
            logger=self._log,
        )

        self._log.info(
            "Skills manager initialized",
            skills_dir=str(self.skills_dir),
            archived_dir=str(self.archived_dir),
        )

    # ------------------------------------------------------------------
    # Read-only queries (not queued)
    # ------------------------------------------------------------------

    def is_archived(self, path: str | Path) -> bool:
        return _is_within(Path(path), self.archived_dir)

    async def list_skills(self) -> list[SkillInfo]:
        """All online skills, with created/updated times taken from SKILL.md."""
        skills: list[SkillInfo] = []
        for meta in self.loader.scan():
            if self.is_archived(meta.base_dir):
                continue
            created_at, updated_at = stat_times(meta.path)
            skills.append(
                SkillInfo(
                    name=meta.name,
                    description=meta.description,
                    path=meta.path,
                    base_dir=meta.base_dir,
                    created_at=created_at,
                    updated_at=updated_at,
                )
            )
        return skills

    async def get_skill_info(self, skill_name: str) -> SkillDetail | None:
        """Full detail for an online skill, or None if no skill has that name.

        Raises ``ArchivedSkillError`` if the only match lives in the archive.
        """
        skill = self.loader.load(skill_name)
        if skill is None:
            return None
        meta = skill.metadata
        if self.is_archived(meta.base_dir):
            raise ArchivedSkillError(f"Cannot get info for archived skill: {skill_name}")

        files = await self._files.list_files(meta.base_dir, ".")
        created_at, updated_at = stat_times(meta.path)
        return SkillDetail(
            name=meta.name,
            description=meta.description,
            path=meta.path,
            base_dir=meta.base_dir,
            created_at=created_at,
            updated_at=updated_at,
            files=files,
            references=skill.references,
            scripts=skill.scripts,
            assets=skill.assets,
        )

    async def list_archived_skills(self) -> list[ArchivedSkillInfo]:
        """Archived skills, most recently archived first.

        Only directories holding a SKILL.md and named ``<name>_<timestamp>Z``
        are listed. ``archived_at`` is the directory's mtime, falling back to
        the timestamp encoded in its name.
        """
        if not self.archived_dir.is_dir():
            return []

        archived: list[tuple[ArchivedSkillInfo, datetime]] = []
        for entry in sorted(self.archived_dir.iterdir()):
            if not entry.is_dir() or not (entry / MANIFEST_NAME).is_file():
                continue
            parsed = parse_archived_name(entry.name)
            if parsed is None:
                self._log.debug("Skipping unrecognized archive entry", entry=entry.name)
                continue
            original_name, encoded_at = parsed
            _, modified_at = stat_times(entry)
            archived.append(
                (
                    ArchivedSkillInfo(
                        original_name=original_name,
                        archived_name=entry.name,
                        archived_path=entry,
                        archived_at=modified_at or encoded_at,
                    ),
                    encoded_at,
                )
            )

        archived.sort(key=lambda pair: (pair[0].archived_at, pair[1]), reverse=True)
        return [info for info, _ in archived]

    async def get_skill_file_tree(self, skill_name: str) -> FileTreeNode:
        skill = self._require_skill(skill_name)
        if self.is_archived(skill.metadata.base_dir):
            raise ArchivedSkillError(f"Cannot get file tree for archived skill: {skill_name}")
        return await self._files.list_files(skill.metadata.base_dir, ".")

    async def read_skill_file(self, skill_name: str, file_path: str) -> str:
        skill = self._require_skill(skill_name)
        if self.is_archived(skill.metadata.base_dir):
            raise ArchivedSkillError(f"Cannot read archived skill: {skill_name}")
        normalized = _check_relative_file_path(file_path)
        try:
            return await self._files.read_file(skill.metadata.base_dir, normalized)
        except FileNotFoundError:
            raise SkillNotFoundError(f"File not found: {skill_name}/{file_path}") from None

    def get_queue_status(self) -> QueueStatus:
        return self._queue.get_queue_status()

    # ------------------------------------------------------------------
    # Mutations (queued)
    # ------------------------------------------------------------------

    async def create_skill(
        self,
        skill_name: str,
        options: CreateSkillOptions | None = None,
    ) -> SkillDetail:
        opts = options or CreateSkillOptions(name=skill_name)
        await self._submit(
            OperationType.CREATE,
            skill_name,
            lambda: self._do_create_skill(skill_name, opts),
        )
        detail = await self.get_skill_info(skill_name)
        if detail is None:
            raise SkillNotFoundError(f"Failed to get skill info after creation: {skill_name}")
        return detail

    async def rename_skill(self, old_name: str, new_name: str) -> None:
        await self._submit(
            OperationType.RENAME,
            f"{old_name} -> {new_name}",
            lambda: self._do_rename_skill(old_name, new_name),
        )

    async def edit_skill_file(
        self,
        skill_name: str,
        file_path: str,
        content: str,
        *,
        use_sandbox: bool | None = None,
    ) -> None:
        """Overwrite (or create) a file inside an online skill.

        With ``use_sandbox=False`` the write skips the boundary-enforced
        accessor and relies only on the path check done here. That is less
        safe: symlinks inside the skill are not contained.
        """
        sandboxed = self.use_sandbox if use_sandbox is None else use_sandbox
        await self._submit(
            OperationType.EDIT,
            skill_name,
            lambda: self._do_edit_skill_file(skill_name, file_path, content, sandboxed),
        )

    async def delete_skill_file(self, skill_name: str, file_path: str) -> None:
        await self._submit(
            OperationType.EDIT,
            skill_name,
            lambda: self._do_delete_skill_file(skill_name, file_path),
        )

    async def delete_skill(self, skill_name: str) -> None:
        """Archive a skill: move its directory under the archive root."""
        await self._submit(
            OperationType.DELETE,
            skill_name,
            lambda: self._do_delete_skill(skill_name),
        )

    async def restore_skill(self, archived_skill_name: str) -> None:
        await self._submit(
            OperationType.RESTORE,
            archived_skill_name,
            lambda: self._do_restore_skill(archived_skill_name),
        )

    async def purge_archived_skill(self, archived_skill_name: str) -> None:
        """Permanently remove an archived skill directory."""
        await self._submit(
            OperationType.PURGE,
            archived_skill_name,
            lambda: self._do_purge_archived_skill(archived_skill_name),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _submit(
        self,
        op_type: OperationType,
        target: str,
        body: Callable[[], Awaitable[None]],
    ) -> OperationTask:
        """Enqueue *body* as a task and wait for it to settle.

        Re-raises the task's own error unchanged if it failed.
        """
        task = OperationTask(type=op_type, target_skill=target, execute=body)
        self._queue.enqueue(task)
        try:
            await task.wait(self.operation_timeout)
        except TimeoutError:
            raise OperationTimeoutError(f"Operation timeout: {op_type} - {target}") from None
        if task.error is not None:
            raise task.error
        return task

    def _require_skill(self, skill_name: str) -> SkillContent:
        skill = self.loader.load(skill_name)
        if skill is None:
            raise SkillNotFoundError(f"Skill not found: {skill_name}")
        return skill

    def _find_online(self, skill_name: str) -> SkillContent | None:
        skill = self.loader.load(skill_name)
        if skill is None or self.is_archived(skill.metadata.base_dir):
            return None
        return skill

    def _archived_named(self, skill_name: str) -> bool:
        if not self.archived_dir.is_dir():
            return False
        for entry in self.archived_dir.iterdir():
            parsed = parse_archived_name(entry.name)
            if parsed and parsed[0] == skill_name and (entry / MANIFEST_NAME).is_file():
                return True
        return False

    async def _do_create_skill(self, skill_name: str, options: CreateSkillOptions) -> None:
        if not is_valid_skill_name(skill_name):
            raise SkillValidationError(f"Invalid skill name: {skill_name}")

        # Archive first: the loader also sees manifests under .archived/
        existing = self.loader.load(skill_name)
        if self._archived_named(skill_name) or (
            existing is not None and self.is_archived(existing.metadata.base_dir)
        ):
            raise SkillConflictError(
                f"Archived skill with name '{skill_name}' already exists. "
                "Please restore or permanently delete it first."
            )
        skill_dir = self.skills_dir / skill_name
        if existing is not None or skill_dir.exists():
            raise SkillConflictError(f"Skill already exists: {skill_name}")

        skill_dir.mkdir(parents=True)
        for sub in RESOURCE_DIRS:
            (skill_dir / sub).mkdir()
        (skill_dir / MANIFEST_NAME).write_text(
            render_manifest(skill_name, options), encoding="utf-8"
        )

        self._log.info("Skill created", skill=skill_name, path=str(skill_dir))

    async def _do_rename_skill(self, old_name: str, new_name: str) -> None:
        old_skill = self._require_skill(old_name)
        if self.is_archived(old_skill.metadata.base_dir):
            raise ArchivedSkillError(
                f"Cannot rename archived skill: {old_name}. Please restore it first."
            )
        if not is_valid_skill_name(new_name):
            raise SkillValidationError(f"Invalid skill name: {new_name}")

        old_path = old_skill.metadata.base_dir
        new_path = self.skills_dir / new_name
        if self._find_online(new_name) is not None or new_path.exists():
            raise SkillConflictError(f"Skill already exists: {new_name}")

        old_path.rename(new_path)
        try:
            _rewrite_manifest_name(new_path / MANIFEST_NAME, new_name)
        except OSError:
            # Put the directory back so the skill stays loadable under its old name
            new_path.rename(old_path)
            raise

        self._log.info("Skill renamed", old=old_name, new=new_name)

    async def _do_edit_skill_file(
        self,
        skill_name: str,
        file_path: str,
        content: str,
        use_sandbox: bool,
    ) -> None:
        skill = self._require_skill(skill_name)
        if self.is_archived(skill.metadata.base_dir):
            raise ArchivedSkillError(
                f"Cannot edit archived skill: {skill_name}. Please restore it first."
            )
        normalized = _check_relative_file_path(file_path)

        if use_sandbox:
            await self._files.write_file(skill.metadata.base_dir, normalized, content)
        else:
            target = skill.metadata.base_dir / normalized
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
            self._log.warning(
                "Skill file written without sandbox", skill=skill_name, path=normalized
            )

        self._log.info("Skill file edited", skill=skill_name, path=normalized)

    async def _do_delete_skill_file(self, skill_name: str, file_path: str) -> None:
        skill = self._require_skill(skill_name)
        if self.is_archived(skill.metadata.base_dir):
            raise ArchivedSkillError(
                f"Cannot edit archived skill: {skill_name}. Please restore it first."
            )
        normalized = _check_relative_file_path(file_path)
        if normalized == MANIFEST_NAME:
            raise SkillValidationError(f"Cannot delete {MANIFEST_NAME}; delete the skill instead")

        await self._files.delete_file(skill.metadata.base_dir, normalized)
        self._log.info("Skill file deleted", skill=skill_name, path=normalized)

    async def _do_delete_skill(self, skill_name: str) -> None:
        skill = self._require_skill(skill_name)
        if self.is_archived(skill.metadata.base_dir):
            raise ArchivedSkillError(f"Skill is already archived: {skill_name}")

        self.archived_dir.mkdir(parents=True, exist_ok=True)
        archived_name = make_archived_name(skill_name)
        archived_path = self.archived_dir / archived_name
        if archived_path.exists():
            raise SkillConflictError(f"Archived skill already exists: {archived_name}")

        # shutil.move renames in place and falls back to copy+delete across devices
        shutil.move(str(skill.metadata.base_dir), str(archived_path))
        # A move keeps the directory mtime; stamp it with the archive instant
        os.utime(archived_path)

        self._log.info("Skill archived", skill=skill_name, archived_name=archived_name)

    async def _do_restore_skill(self, archived_skill_name: str) -> None:
        _check_archived_name(archived_skill_name)
        archived_path = self.archived_dir / archived_skill_name
        if not archived_path.is_dir():
            raise SkillNotFoundError(f"Archived skill not found: {archived_skill_name}")

        original_name = strip_archive_suffix(archived_skill_name)
        target_path = self.skills_dir / original_name
        if target_path.exists() or self._find_online(original_name) is not None:
            raise SkillConflictError(f"Skill already exists: {original_name}")

        shutil.move(str(archived_path), str(target_path))

        self._log.info("Skill restored", archived_name=archived_skill_name, skill=original_name)

    async def _do_purge_archived_skill(self, archived_skill_name: str) -> None:
        _check_archived_name(archived_skill_name)
        archived_path = self.archived_dir / archived_skill_name
        if not archived_path.is_dir():
            raise SkillNotFoundError(f"Archived skill not found: {archived_skill_name}")

        shutil.rmtree(archived_path)

        self._log.info("Archived skill purged", archived_name=archived_skill_name)


def _rewrite_manifest_name(manifest: Path, new_name: str) -> None:
    """Replace the first ``name:`` line, leaving every other byte untouched."""
    raw = manifest.read_bytes()
    updated = _MANIFEST_NAME_LINE_RE.sub(lambda _: f"name: {new_name}".encode(), raw, count=1)
    manifest.write_bytes(updated)
