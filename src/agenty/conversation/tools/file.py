"""
Filesystem tools rooted at a fixed working directory.

Every tool here resolves model-supplied paths with
``sanitize_join_relative_path`` so the model can only see files under its
root: absolute paths and ``..`` components are refused. Expected problems
(missing paths, directories where files were expected, bad patterns) come
back as descriptive text so the model can adjust and try again.

Blocking filesystem work runs in a worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
from pathlib import Path, PurePath

from pydantic import BaseModel, Field

from agenty.conversation.tools.base import Tool

logger = logging.getLogger(__name__)

# Bytes of a file returned by ``read_file``.
READ_LIMIT = 8192


def sanitize_join_relative_path(cwd: Path, rpath: str | PurePath) -> Path:
    """Join *rpath* onto *cwd*, refusing anything that could escape it.

    Raises:
        ValueError: If *rpath* is absolute or contains ``..``. The message is
            suitable for showing to the model.
    """
    rpath = PurePath(rpath)
    if rpath.is_absolute():
        raise ValueError(f"{str(rpath)!r} is an absolute path")
    if ".." in rpath.parts:
        raise ValueError(f"{str(rpath)!r} contains '..'")
    return cwd / rpath


def hexdump(data: bytes, width: int = 16) -> str:
    """Render *data* as ``offset  hex bytes  |ascii|`` lines."""
    lines = []
    for offset in range(0, len(data), width):
        chunk = data[offset : offset + width]
        hex_part = " ".join(f"{b:02x}" for b in chunk)
        ascii_part = "".join(chr(b) if 0x20 <= b < 0x7F else "." for b in chunk)
        lines.append(f"{offset:08x}  {hex_part:<{width * 3 - 1}}  |{ascii_part}|")
    return "\n".join(lines)


def _entry_type(path: Path) -> str:
    if path.is_symlink():
        return "symlink"
    if path.is_dir():
        return "directory"
    if path.is_file():
        return "file"
    return ""


def list_files(cwd: Path, paths: list[Path]) -> list[str]:
    """Describe *paths* as ``name\\ttype\\tsize`` rows relative to *cwd*."""
    rows = []
    for path in paths:
        name = Path(os.path.relpath(path, cwd)).as_posix()
        rows.append(f"{name}\t{_entry_type(path)}\t{path.lstat().st_size}")
    return rows


class ReadFileArgs(BaseModel):
    file_path: str = Field(description="Path of the file, relative to the root directory.")


class ReadFileTool(Tool):
    NAME = "read_file"
    DESCRIPTION = (
        "Read file contents of the path `file_path`. "
        "The result will be hexdump if the file is a binary file."
    )
    ARGUMENTS = ReadFileArgs

    def __init__(self, cwd: Path) -> None:
        self.cwd = Path(cwd)

    async def invoke(self, arguments: ReadFileArgs) -> str:
        return await asyncio.to_thread(self.read_file, arguments.file_path)

    def read_file(self, file_path: str) -> str:
        try:
            target = sanitize_join_relative_path(self.cwd, file_path)
        except ValueError as exc:
            return str(exc)
        if target.is_dir():
            return f"Path {file_path!r} is a directory"
        try:
            with target.open("rb") as fp:
                data = fp.read(READ_LIMIT)
        except OSError as exc:
            return f"Fail to open {file_path!r} due to {exc.strerror or exc}"

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            logger.debug("%s is not valid UTF-8; returning a hexdump", target)
            return hexdump(data)


class ListDirectoryArgs(BaseModel):
    relative_path: str = Field(description="Directory to list, relative to the root directory.")


class ListDirectoryTool(Tool):
    NAME = "list_dir"
    DESCRIPTION = (
        "List a given directory entries. '.' is allowed to list entries of the root "
        "directory but '..' is not allowed to avoid path traversal. Absolute path is "
        "not allowed and you shall always use relative path to the root directory."
    )
    ARGUMENTS = ListDirectoryArgs

    def __init__(self, cwd: Path) -> None:
        self.cwd = Path(cwd)

    async def invoke(self, arguments: ListDirectoryArgs) -> str:
        return await asyncio.to_thread(self.list_directory, arguments.relative_path)

    def list_directory(self, relative_path: str) -> str:
        try:
            target = sanitize_join_relative_path(self.cwd, relative_path)
        except ValueError as exc:
            return str(exc)
        if not target.is_dir():
            return f"{relative_path!r} is not a directory"

        rows = list_files(self.cwd, sorted(target.iterdir()))
        return (
            f"The contents of folder {relative_path!r} is:\n"
            "name\ttype\tsize\n" + "\n".join(rows)
        )


class FindFileArgs(BaseModel):
    directory: str = Field(description="Directory to search, relative to the root directory.")
    file_name_pattern: str = Field(description="Glob pattern matched against file names.")


class FindFileTool(Tool):
    NAME = "find_file"
    DESCRIPTION = (
        "Find files with names having the given glob pattern under the given directory. "
        "For example, use '*.c' to find all C source files. For directory, note '.' is "
        "allowed to list entries of the root directory but '..' is not allowed to avoid "
        "path traversal. Absolute path is not allowed and you shall always use relative "
        "path to the root directory."
    )
    ARGUMENTS = FindFileArgs

    def __init__(self, cwd: Path) -> None:
        self.cwd = Path(cwd)

    async def invoke(self, arguments: FindFileArgs) -> str:
        return await asyncio.to_thread(
            self.find_file, arguments.directory, arguments.file_name_pattern
        )

    def find_file(self, directory: str, pattern: str) -> str:
        try:
            target = sanitize_join_relative_path(self.cwd, directory)
        except ValueError as exc:
            return str(exc)
        if not target.is_dir():
            return f"{directory!r} is not a directory"

        # The walk starts at the directory itself, which may match too.
        matches = [target] if fnmatch.fnmatchcase(target.name, pattern) else []
        for dirpath, dirnames, filenames in os.walk(target):
            dirnames.sort()
            for name in sorted(dirnames + filenames):
                if fnmatch.fnmatchcase(name, pattern):
                    matches.append(Path(dirpath) / name)
        rows = list_files(self.cwd, matches)
        return (
            f"The files found under directory {directory!r} with given pattern "
            f"{pattern} are:\n" + "\n".join(rows)
        )
