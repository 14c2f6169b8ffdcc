"""
Abstract base class and parameter schemas for agent tools.

Tools receive the model's argument map only after it has been checked
against their ``ToolSchema``; ``execute`` may therefore index required
parameters directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from toolguard._types import ToolResult

VALID_SCHEMA_TYPES = frozenset({"string", "integer", "number", "boolean", "array", "object"})


@dataclass(frozen=True)
class PropertySchema:
    """A single property in a tool's parameter schema (JSON Schema subset)."""

    type: str = "string"
    description: str = ""
    enum: tuple[str, ...] | None = None
    minimum: float | None = None
    maximum: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    default: Any = None
    items: PropertySchema | None = None

    def __post_init__(self) -> None:
        if self.type not in VALID_SCHEMA_TYPES:
            raise ValueError(f"Unsupported schema type: {self.type}")

    def validate(self, value: Any, path: str) -> list[str]:
        """Return error messages for ``value`` (empty when valid)."""
        if self.type == "string":
            if not isinstance(value, str):
                return [f"'{path}' should be string"]
            errors = []
            if self.min_length is not None and len(value) < self.min_length:
                errors.append(f"'{path}' must be at least {self.min_length} chars")
            if self.max_length is not None and len(value) > self.max_length:
                errors.append(f"'{path}' must be at most {self.max_length} chars")
            if self.enum is not None and value not in self.enum:
                errors.append(f"'{path}' must be one of {list(self.enum)}")
            return errors

        if self.type in ("integer", "number"):
            # bool is an int subclass but never a valid number here
            if isinstance(value, bool):
                return [f"'{path}' should be {self.type}"]
            if self.type == "integer" and not isinstance(value, int):
                return [f"'{path}' should be integer"]
            if not isinstance(value, (int, float)):
                return [f"'{path}' should be number"]
            errors = []
            if self.minimum is not None and value < self.minimum:
                errors.append(f"'{path}' must be >= {_fmt(self.minimum)}")
            if self.maximum is not None and value > self.maximum:
                errors.append(f"'{path}' must be <= {_fmt(self.maximum)}")
            return errors

        if self.type == "boolean":
            return [] if isinstance(value, bool) else [f"'{path}' should be boolean"]

        if self.type == "array":
            if not isinstance(value, list):
                return [f"'{path}' should be array"]
            errors = []
            if self.items is not None:
                for index, item in enumerate(value):
                    errors.extend(self.items.validate(item, f"{path}[{index}]"))
            return errors

        return [] if isinstance(value, dict) else [f"'{path}' should be object"]

    def to_dict(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        if self.min_length is not None:
            schema["minLength"] = self.min_length
        if self.max_length is not None:
            schema["maxLength"] = self.max_length
        if self.default is not None:
            schema["default"] = self.default
        if self.items is not None:
            schema["items"] = self.items.to_dict()
        return schema


def _fmt(number: float) -> str:
    return str(int(number)) if float(number).is_integer() else str(number)


@dataclass(frozen=True)
class ToolSchema:
    """Parameter schema of a tool: an object with typed properties."""

    properties: dict[str, PropertySchema] = field(default_factory=dict)
    required: tuple[str, ...] = ()

    def validate(self, params: dict[str, Any]) -> list[str]:
        errors = [
            f"missing required parameter '{key}'" for key in self.required if key not in params
        ]
        for key, value in params.items():
            prop = self.properties.get(key)
            if prop is not None:
                errors.extend(prop.validate(value, key))
        return errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {key: prop.to_dict() for key, prop in self.properties.items()},
            "required": list(self.required),
        }


class Tool(ABC):
    """
    Abstract base for agent tools.

    Tools are the capabilities the agent uses to touch the environment:
    files, processes and the network. Subclasses define ``name``,
    ``description`` and ``parameters`` and implement ``execute``.

    ``execute`` reports every outcome, including policy denials, as a
    ToolResult. Raising is reserved for bugs; the registry turns those into
    a generic error result.
    """

    name: str
    description: str

    @property
    @abstractmethod
    def parameters(self) -> ToolSchema: ...

    @abstractmethod
    async def execute(self, params: dict[str, Any]) -> ToolResult:
        """
        Run the tool.

        Args:
            params: Arguments already validated against ``parameters``.

        Returns:
            ToolResult describing the outcome.
        """
        ...

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """Validate parameters; returns error messages (empty if valid)."""
        return self.parameters.validate(params)

    def to_schema(self) -> dict[str, Any]:
        """Return the tool definition in OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters.to_dict(),
            },
        }
