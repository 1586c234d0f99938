"""Boundary-enforced file access for a single skill directory.

Each call builds a fresh sandbox rooted at the skill's ``base_dir`` with the
boundary check on and no extra allowed paths. Nothing is cached between
calls, so sizes and mtimes in a listed tree always come from disk.
"""

from __future__ import annotations

import posixpath
import shlex
import sys
from pathlib import Path
from typing import Any

from skillsmith.errors import ExecutionError, SkillNotFoundError
from skillsmith.logger import logger as _default_logger
from skillsmith.sandbox import LocalSandbox, SandboxConfig, SandboxFactory, normalize_relative
from skillsmith.types import FileTreeNode
from skillsmith.utils import iso_from_timestamp

_DEFAULT_DELETE_TIMEOUT_MS = 5000


class SandboxFileManager:
    """Read, write, delete and list files inside one skill directory."""

    def __init__(
        self,
        sandbox_factory: SandboxFactory | None = None,
        *,
        delete_timeout_ms: int = _DEFAULT_DELETE_TIMEOUT_MS,
        logger: Any = None,
    ) -> None:
        self._factory = sandbox_factory or SandboxFactory()
        self._delete_timeout_ms = delete_timeout_ms
        self._log = logger or _default_logger

    def _sandbox_for(self, skill_base_dir: str | Path) -> LocalSandbox:
        base = Path(skill_base_dir)
        return self._factory.create(
            SandboxConfig(
                work_dir=base,
                base_dir=base,
                enforce_boundary=True,
                allow_paths=[],
            )
        )

    async def read_file(self, skill_base_dir: str | Path, relative_path: str) -> str:
        sandbox = self._sandbox_for(skill_base_dir)
        return await sandbox.fs.read(relative_path)

    async def write_file(
        self,
        skill_base_dir: str | Path,
        relative_path: str,
        content: str,
    ) -> None:
        sandbox = self._sandbox_for(skill_base_dir)
        await sandbox.fs.write(relative_path, content)

    async def delete_file(self, skill_base_dir: str | Path, relative_path: str) -> None:
        """Delete one file via the platform's shell delete command.

        The sandbox fs has no delete primitive, so this goes through ``exec``.
        The path is checked against the boundary before the command is built.
        A symlink is removed itself; the file it points to is left alone.
        """
        sandbox = self._sandbox_for(skill_base_dir)
        sandbox.resolve(relative_path)
        parent_rel, name = posixpath.split(normalize_relative(relative_path))
        if name in ("", "."):
            raise ExecutionError(f"Refusing to delete a directory: {relative_path}")
        # Resolve only the parent so a final symlink component is not followed
        target = sandbox.resolve(parent_rel or ".") / name
        if not target.is_symlink() and not target.exists():
            raise SkillNotFoundError(f"File not found: {relative_path}")
        if target.is_dir() and not target.is_symlink():
            raise ExecutionError(f"Refusing to delete a directory: {relative_path}")

        rel = target.relative_to(sandbox.work_dir).as_posix()
        result = await sandbox.exec(_delete_command(rel), timeout_ms=self._delete_timeout_ms)
        if not result.ok:
            detail = result.start_error or result.stderr
            if result.timed_out:
                detail = "timed out"
            raise ExecutionError(
                f"Failed to delete {relative_path}: {detail or f'exit code {result.returncode}'}"
            )
        self._log.debug("Skill file deleted", base_dir=str(skill_base_dir), path=rel)

    async def create_dir(self, skill_base_dir: str | Path, relative_path: str) -> None:
        """Create a directory (and parents) by writing an empty ``.gitkeep`` into it."""
        sandbox = self._sandbox_for(skill_base_dir)
        await sandbox.fs.write(posixpath.join(relative_path, ".gitkeep"), "")

    async def list_files(
        self,
        skill_base_dir: str | Path,
        relative_path: str = ".",
    ) -> FileTreeNode:
        """Return the file tree rooted at *relative_path*.

        Dot-prefixed entries are left out. Directories sort before files,
        then by name.
        """
        sandbox = self._sandbox_for(skill_base_dir)
        root = sandbox.resolve(relative_path)
        if not root.is_dir():
            raise SkillNotFoundError(f"Directory not found: {relative_path}")

        rel_root = root.relative_to(sandbox.work_dir).as_posix()
        pattern = "**/*" if rel_root == "." else f"{rel_root}/**/*"
        entries = await sandbox.fs.glob(pattern)
        root_name = rel_root if rel_root == "." else posixpath.basename(rel_root)
        return _build_tree(sandbox.work_dir, root_name, rel_root, entries)


def _delete_command(rel_path: str) -> str:
    if sys.platform == "win32":
        win_path = rel_path.replace("/", "\\")
        return f'del /F /Q "{win_path}"'
    return f"rm -f {shlex.quote(rel_path)}"


def _build_tree(
    base: Path,
    root_name: str,
    rel_root: str,
    entries: list[str],
) -> FileTreeNode:
    """Assemble glob results (relative posix paths) into a ``FileTreeNode``.

    Every node is stat'ed fresh. Entries that vanish between the glob and the
    stat are dropped.
    """
    st = (base / rel_root).stat()
    tree = FileTreeNode(
        name=root_name,
        type="dir",
        path=rel_root,
        size=st.st_size,
        modified_time=iso_from_timestamp(st.st_mtime),
        children=[],
    )
    nodes: dict[str, FileTreeNode] = {rel_root: tree}

    # Sorted input guarantees parents are seen before their children.
    for rel in sorted(entries):
        parent_rel = posixpath.dirname(rel) or "."
        parent = nodes.get(parent_rel)
        if parent is None or parent.children is None:
            continue
        try:
            st = (base / rel).stat()
        except OSError:
            continue
        is_dir = (base / rel).is_dir()
        node = FileTreeNode(
            name=posixpath.basename(rel),
            type="dir" if is_dir else "file",
            path=rel,
            size=st.st_size,
            modified_time=iso_from_timestamp(st.st_mtime),
            children=[] if is_dir else None,
        )
        parent.children.append(node)
        if is_dir:
            nodes[rel] = node

    for node in nodes.values():
        if node.children:
            node.children.sort(key=lambda n: (n.type != "dir", n.name))
    return tree
