"""Invoke the external workflow compiler after a successful update."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol, Sequence

logger = logging.getLogger(__name__)


class CompileError(RuntimeError):
    """Raised when compiling an updated workflow fails."""


class WorkflowCompiler(Protocol):
    def compile(self, path: str) -> None:
        ...


class CommandCompiler:
    """Run a compile command for a workflow file.

    ``{path}`` and ``{name}`` placeholders in the command are replaced with the
    workflow file path and its name without the ``.md`` extension.
    """

    def __init__(self, command: Sequence[str], *, cwd: str | None = None, timeout: int = 300):
        if not command:
            raise ValueError("compile command cannot be empty")
        self.command = list(command)
        self.cwd = cwd
        self.timeout = timeout

    def build_command(self, path: str) -> list[str]:
        name = Path(path).name
        if name.endswith(".md"):
            name = name[: -len(".md")]
        return [part.replace("{path}", str(path)).replace("{name}", name) for part in self.command]

    def compile(self, path: str) -> None:
        command = self.build_command(path)
        logger.debug("Compiling %s: %s", path, " ".join(command))
        try:
            result = subprocess.run(
                command,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise CompileError(f"compiling {path} timed out after {self.timeout}s") from exc
        except FileNotFoundError as exc:
            raise CompileError(f"compiler not found: {command[0]}") from exc
        except OSError as exc:
            raise CompileError(f"failed to run compiler {command[0]}: {exc}") from exc

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").strip()
            raise CompileError(f"failed to compile {path}: {output or f'exit status {result.returncode}'}")


class NullCompiler:
    """Compiler used when compilation is disabled."""

    def compile(self, path: str) -> None:
        logger.debug("Skipping compilation of %s", path)


__all__ = [
    "CommandCompiler",
    "CompileError",
    "NullCompiler",
    "WorkflowCompiler",
]
