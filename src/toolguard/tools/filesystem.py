"""
File tools: read, write, edit and list, confined by a PathJail.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from toolguard._types import ToolResult
from toolguard.security.paths import PathJail, is_env_file
from toolguard.tools.base import PropertySchema, Tool, ToolSchema

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 1_048_576  # 1 MiB


class _FileTool(Tool):
    """Shared path handling for the file tools."""

    def __init__(self, jail: PathJail) -> None:
        self.jail = jail

    def _resolve(self, requested: str) -> tuple[ToolResult | None, Path | None]:
        verdict, path = self.jail.resolve(requested)
        if not verdict:
            return ToolResult.access_denied(f"Access denied: {verdict.reason}"), None
        return None, path


class ReadFileTool(_FileTool):
    name = "read_file"
    description = "Read the contents of a file at the given path."

    @property
    def parameters(self) -> ToolSchema:
        return ToolSchema(
            properties={"path": PropertySchema(type="string", description="The file path to read")},
            required=("path",),
        )

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        path = params["path"]
        denied, file_path = self._resolve(path)
        if denied:
            return denied

        if not file_path.exists():
            return ToolResult.error(f"Error: File not found: {path}")
        if not file_path.is_file():
            return ToolResult.error(f"Error: Path is not a file: {path}")

        try:
            if file_path.stat().st_size > MAX_FILE_SIZE:
                return ToolResult.error(f"Error: File too large (max {MAX_FILE_SIZE} bytes)")
            content = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return ToolResult.error(f"Error: File is not valid UTF-8 text: {path}")
        except OSError as e:
            return ToolResult.error(f"Error: Cannot read file: {e.strerror or e}")

        logger.info("Read %d chars from %s", len(content), path)
        return ToolResult.success(content)


class WriteFileTool(_FileTool):
    name = "write_file"
    description = "Write content to a file at the given path. Creates parent directories if needed."

    @property
    def parameters(self) -> ToolSchema:
        return ToolSchema(
            properties={
                "path": PropertySchema(type="string", description="The file path to write to"),
                "content": PropertySchema(type="string", description="The content to write"),
            },
            required=("path", "content"),
        )

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        path = params["path"]
        content: str = params["content"]
        denied, file_path = self._resolve(path)
        if denied:
            return denied

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            data = content.encode("utf-8")
            file_path.write_bytes(data)
        except IsADirectoryError:
            return ToolResult.error(f"Error: Path is a directory: {path}")
        except OSError as e:
            return ToolResult.error(f"Error: Cannot write file: {e.strerror or e}")

        logger.info("Wrote %d bytes to %s", len(data), path)
        return ToolResult.success(f"Successfully wrote {len(data)} bytes to {path}")


class EditFileTool(_FileTool):
    name = "edit_file"
    description = (
        "Edit a file by replacing old_text with new_text. "
        "old_text must match exactly once in the file."
    )

    @property
    def parameters(self) -> ToolSchema:
        return ToolSchema(
            properties={
                "path": PropertySchema(type="string", description="The file path to edit"),
                "old_text": PropertySchema(
                    type="string", description="The exact text to find and replace", min_length=1
                ),
                "new_text": PropertySchema(type="string", description="The text to replace with"),
            },
            required=("path", "old_text", "new_text"),
        )

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        path = params["path"]
        old_text: str = params["old_text"]
        new_text: str = params["new_text"]
        denied, file_path = self._resolve(path)
        if denied:
            return denied

        if not file_path.is_file():
            return ToolResult.error(f"Error: File not found: {path}")

        try:
            content = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return ToolResult.error(f"Error: File is not valid UTF-8 text: {path}")
        except OSError as e:
            return ToolResult.error(f"Error: Cannot read file: {e.strerror or e}")

        count = content.count(old_text)
        if count == 0:
            return ToolResult.error("Error: Text not found in file")
        if count > 1:
            return ToolResult.error(f"Error: Text appears {count} times. Provide more context")

        try:
            file_path.write_text(content.replace(old_text, new_text, 1), encoding="utf-8")
        except OSError as e:
            return ToolResult.error(f"Error: Cannot write file: {e.strerror or e}")

        logger.info("Edited %s", path)
        return ToolResult.success(f"Successfully edited {path}")


class ListDirTool(_FileTool):
    name = "list_dir"
    description = "List the contents of a directory."

    @property
    def parameters(self) -> ToolSchema:
        return ToolSchema(
            properties={"path": PropertySchema(type="string", description="The directory path to list")},
            required=("path",),
        )

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        path = params["path"]
        denied, dir_path = self._resolve(path)
        if denied:
            return denied

        if not dir_path.is_dir():
            return ToolResult.error(f"Error: Directory not found: {path}")

        try:
            entries = sorted(
                entry for entry in dir_path.iterdir() if not is_env_file(entry.name)
            )
        except OSError as e:
            return ToolResult.error(f"Error: Cannot list directory: {e.strerror or e}")

        if not entries:
            return ToolResult.success("Directory is empty")

        lines = [
            f"{'[dir]  ' if entry.is_dir() else '[file] '}{entry.name}" for entry in entries
        ]
        return ToolResult.success("\n".join(lines))


def filesystem_tools(jail: PathJail) -> list[Tool]:
    """All four file tools sharing one jail."""
    return [ReadFileTool(jail), WriteFileTool(jail), EditFileTool(jail), ListDirTool(jail)]
