"""
Best-effort git context capture.

Every lookup tolerates a missing git binary or a directory outside a
repository by leaving the corresponding field empty.
"""

import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Union

import structlog

from .models import GitContext

logger = structlog.get_logger(__name__)

GIT_TIMEOUT_SECONDS = 5


def _run_git(args: List[str], cwd: Path) -> Optional[str]:
    """Run a git command and return stripped stdout, or None on any failure."""
    cmd = ["git"] + args
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            check=False,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("git_unavailable", cmd=" ".join(cmd), error=str(e))
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


def capture_git_context(working_dir: Union[str, Path, None] = None) -> GitContext:
    wd = Path(working_dir or os.getcwd()).resolve()
    context = GitContext(working_directory=str(wd))

    toplevel = _run_git(["rev-parse", "--show-toplevel"], wd)
    if not toplevel:
        return context

    context.branch = _run_git(["rev-parse", "--abbrev-ref", "HEAD"], wd) or ""
    context.worktree = Path(toplevel).name
    context.remote_url = _run_git(["remote", "get-url", "origin"], wd) or ""
    return context


def latest_commit(working_dir: Union[str, Path, None] = None) -> Optional[Dict[str, str]]:
    """Hash and subject of HEAD, or None outside a repository."""
    wd = Path(working_dir or os.getcwd()).resolve()
    output = _run_git(["log", "-1", "--format=%H%n%s"], wd)
    if not output:
        return None
    commit_hash, _, message = output.partition("\n")
    return {"hash": commit_hash, "message": message}
