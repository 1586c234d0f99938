"""Local sandbox: filesystem and shell access confined to one directory.

A sandbox is built from a ``SandboxConfig`` by ``SandboxFactory.create()``.
With ``enforce_boundary`` on, every path handed to ``fs.read``, ``fs.write``
or ``fs.glob`` is checked before any I/O happens:

1. The path is normalized. Absolute paths and paths whose first segment is
   ``..`` are rejected outright.
2. The path is joined to ``base_dir`` and resolved (following symlinks); the
   result must stay inside ``base_dir`` or one of ``allow_paths``.

The check and the later I/O are not atomic. Something outside this process
that swaps a directory for a symlink in between can still win the race.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from skillsmith.errors import BoundaryViolationError
from skillsmith.utils import ShellResult, run_shell_command


@dataclass
class SandboxConfig:
    work_dir: Path
    base_dir: Path
    kind: Literal["local"] = "local"
    enforce_boundary: bool = True
    allow_paths: list[Path] = field(default_factory=list)


def normalize_relative(rel_path: str) -> str:
    """Normalize *rel_path* and reject absolute or parent-escaping forms.

    Returns the normalized path with forward slashes. Raises
    ``BoundaryViolationError`` naming the original path.
    """
    raw = rel_path or "."
    if raw[:1] in ("/", "\\") or os.path.isabs(raw):
        raise BoundaryViolationError(f"Path is outside the sandbox boundary: {rel_path}")
    normalized = os.path.normpath(raw).replace("\\", "/")
    if normalized.split("/", 1)[0] == "..":
        raise BoundaryViolationError(f"Path is outside the sandbox boundary: {rel_path}")
    return normalized


class LocalSandbox:
    """Sandbox backed by the local filesystem and ``/bin/sh`` (or ``cmd``)."""

    def __init__(self, config: SandboxConfig) -> None:
        self.config = config
        self.base_dir = Path(config.base_dir).resolve()
        self.work_dir = Path(config.work_dir).resolve()
        self._roots = [self.base_dir, *(Path(p).resolve() for p in config.allow_paths)]
        self.fs = SandboxFS(self)

    def resolve(self, rel_path: str) -> Path:
        """Map *rel_path* to an absolute path, enforcing the boundary if enabled."""
        if not self.config.enforce_boundary:
            return (self.work_dir / rel_path).resolve()

        normalized = normalize_relative(rel_path)
        target = (self.work_dir / normalized).resolve()
        if not any(target == root or target.is_relative_to(root) for root in self._roots):
            raise BoundaryViolationError(f"Path is outside the sandbox boundary: {rel_path}")
        return target

    async def exec(self, cmd: str, *, timeout_ms: int = 60_000) -> ShellResult:
        """Run *cmd* through the shell with ``work_dir`` as the cwd.

        The command string is not inspected; callers must validate any paths
        they interpolate into it with ``resolve()`` first.
        """
        return await run_shell_command(
            cmd,
            cwd=str(self.work_dir),
            timeout_seconds=timeout_ms / 1000,
        )


class SandboxFS:
    """File operations scoped to a ``LocalSandbox``."""

    def __init__(self, sandbox: LocalSandbox) -> None:
        self._sandbox = sandbox

    async def read(self, rel_path: str) -> str:
        return self._sandbox.resolve(rel_path).read_text(encoding="utf-8")

    async def write(self, rel_path: str, content: str) -> None:
        """Write *content*, creating parent directories as needed."""
        target = self._sandbox.resolve(rel_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    async def glob(self, pattern: str, *, absolute: bool = False, dot: bool = False) -> list[str]:
        """Return sorted matches for *pattern* relative to the work dir.

        Entries with a dot-prefixed path component are skipped unless *dot*.
        """
        pattern = pattern.removeprefix("./")
        # The pattern's literal prefix must pass the same boundary check.
        prefix = pattern.split("*", 1)[0].rsplit("/", 1)[0] or "."
        self._sandbox.resolve(prefix)

        root = self._sandbox.work_dir
        matches: list[str] = []
        for path in root.glob(pattern):
            rel = path.relative_to(root)
            if not dot and any(part.startswith(".") for part in rel.parts):
                continue
            matches.append(str(path) if absolute else rel.as_posix())
        return sorted(matches)


class SandboxFactory:
    """Builds sandboxes from configs. Only the ``local`` kind exists."""

    def create(self, config: SandboxConfig) -> LocalSandbox:
        if config.kind != "local":
            raise ValueError(f"Unsupported sandbox kind: {config.kind}")
        return LocalSandbox(config)
