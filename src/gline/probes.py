"""Background probes feeding the border status: git state and system load."""

from __future__ import annotations

import asyncio
import contextlib
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path

import psutil


@dataclass(frozen=True)
class GitStatus:
    repo_name: str = ""
    branch: str = ""
    clean: bool = False
    staged: int = 0
    unstaged: int = 0
    ahead: int = 0
    behind: int = 0
    conflict: bool = False


@dataclass(frozen=True)
class Resources:
    cpu_percent: float
    ram_used: int
    ram_total: int
    timestamp: float = field(default_factory=time.time)


def _parse_int(text: str) -> int:
    digits = "".join(ch for ch in text if ch.isdigit())
    return int(digits) if digits else 0


def parse_porcelain_v2(output: str, repo_name: str = "") -> GitStatus:
    """Parse ``git status --porcelain=v2 --branch`` output."""
    branch = ""
    ahead = behind = staged = unstaged = 0
    conflict = False
    for line in output.splitlines():
        if line.startswith("# branch.head "):
            branch = line[len("# branch.head ") :].strip()
        elif line.startswith("# branch.ab "):
            parts = line[len("# branch.ab ") :].split()
            if len(parts) == 2:
                ahead = _parse_int(parts[0])
                behind = _parse_int(parts[1])
        elif line.startswith(("1 ", "2 ")):
            xy = line[2:4]
            if xy[:1] not in {".", ""}:
                staged += 1
            if xy[1:2] not in {".", ""}:
                unstaged += 1
        elif line.startswith("u "):
            conflict = True
        elif line.startswith("? "):
            unstaged += 1
    return GitStatus(
        repo_name=repo_name,
        branch=branch,
        clean=not (staged or unstaged or conflict),
        staged=staged,
        unstaged=unstaged,
        ahead=ahead,
        behind=behind,
        conflict=conflict,
    )


async def _run_git(directory: str, *args: str) -> str | None:
    proc = await asyncio.create_subprocess_exec(
        "git",
        "-C",
        directory,
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.DEVNULL,
    )
    try:
        stdout, _ = await proc.communicate()
    except asyncio.CancelledError:
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        raise
    if proc.returncode != 0:
        return None
    return stdout.decode(errors="ignore")


async def get_git_status(directory: str) -> GitStatus | None:
    """Return the repository status for ``directory``, or None outside a repo."""
    if not directory or shutil.which("git") is None:
        return None
    toplevel = await _run_git(directory, "rev-parse", "--show-toplevel")
    if toplevel is None:
        return None
    output = await _run_git(directory, "status", "--porcelain=v2", "--branch")
    if output is None:
        return None
    return parse_porcelain_v2(output, Path(toplevel.strip()).name)


def get_resources() -> Resources:
    memory = psutil.virtual_memory()
    return Resources(
        cpu_percent=psutil.cpu_percent(interval=None),
        ram_used=int(memory.total - memory.available),
        ram_total=int(memory.total),
    )
