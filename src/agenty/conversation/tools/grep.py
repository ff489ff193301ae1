"""Regex search over the files below a directory."""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path

from pydantic import BaseModel, Field

from agenty.conversation.tools.base import Tool
from agenty.conversation.tools.file import sanitize_join_relative_path

logger = logging.getLogger(__name__)

MAX_COLUMNS = 80
MAX_OUTPUT = 16384


class GrepArgs(BaseModel):
    directory: str = Field(description="Directory to search, relative to the root directory.")
    pattern: str = Field(description="Regular expression searched for on each line.")


class GrepTool(Tool):
    NAME = "grep_files"
    DESCRIPTION = (
        "Grep files in the given path with pattern. The path should be always relative "
        "path and '.' is allowed while '..' is not allowed. Note the pattern is in regex "
        "grammar not glob grammar."
    )
    ARGUMENTS = GrepArgs

    def __init__(self, cwd: Path) -> None:
        self.cwd = Path(cwd)

    async def invoke(self, arguments: GrepArgs) -> str:
        return await asyncio.to_thread(self.grep, arguments.directory, arguments.pattern)

    def grep(self, directory: str, pattern: str) -> str:
        try:
            target = sanitize_join_relative_path(self.cwd, directory)
        except ValueError as exc:
            return str(exc)
        if not target.is_dir():
            return f"{directory!r} is not a directory"
        try:
            matcher = re.compile(pattern)
        except re.error as exc:
            return f"regex {pattern} error with {exc}"

        lines: list[str] = []
        for dirpath, dirnames, filenames in os.walk(target):
            dirnames.sort()
            for name in sorted(filenames):
                lines.extend(self._search_file(Path(dirpath) / name, matcher))

        output = "\n".join(lines)
        if len(output) > MAX_OUTPUT:
            output = output[:MAX_OUTPUT]
        return output

    def _search_file(self, path: Path, matcher: re.Pattern[str]) -> list[str]:
        try:
            data = path.read_bytes()
        except OSError as exc:
            logger.warning("Fail to search %s due to %s", path, exc)
            return []
        # Binary files are skipped.
        if b"\x00" in data:
            return []

        display = Path(os.path.relpath(path, self.cwd)).as_posix()
        text = data.decode("utf-8", errors="replace")
        # Lines end at "\n" only, like grep; other separators stay in the line.
        lines = text.split("\n")
        if lines[-1] == "":
            lines.pop()
        hits = []
        for lineno, line in enumerate(lines, 1):
            line = line.removesuffix("\r")
            match = matcher.search(line)
            if match is None:
                continue
            column = len(line[: match.start()].encode("utf-8")) + 1
            if len(line.encode("utf-8")) > MAX_COLUMNS:
                count = sum(1 for _ in matcher.finditer(line))
                line = f"[Omitted long line with {count} matches]"
            hits.append(f"{display}:{lineno}:{column}:{line}")
        return hits
