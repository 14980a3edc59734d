"""Field paths and aggregated field errors for Condition messages.

Messages follow the Kubernetes API server convention so that a rejected policy
reads the same whether it was refused by the schema layer or by this engine::

    spec.buffering.busyBuffersSize: Invalid value: "8k": must be larger than bufferSize
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldPath:
    """Dotted path to a field in a resource, e.g. ``spec.targetRefs[0]``."""

    path: str

    def child(self, name: str) -> FieldPath:
        return FieldPath(f"{self.path}.{name}" if self.path else name)

    def index(self, i: int) -> FieldPath:
        return FieldPath(f"{self.path}[{i}]")

    def __str__(self) -> str:
        return self.path


def new_path(root: str, *children: str) -> FieldPath:
    path = FieldPath(root)
    for child in children:
        path = path.child(child)
    return path


@dataclass(frozen=True)
class FieldError:
    """A single invalid field."""

    field: FieldPath
    value: object
    detail: str

    def __str__(self) -> str:
        return f"{self.field}: Invalid value: {_format_value(self.value)}: {self.detail}"


def _format_value(value: object) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def invalid(path: FieldPath, value: object, detail: str) -> FieldError:
    return FieldError(field=path, value=value, detail=detail)


def aggregate(errors: list[FieldError]) -> str | None:
    """Render a list of field errors as one message, or None when empty."""
    if not errors:
        return None
    if len(errors) == 1:
        return str(errors[0])
    return "[" + ", ".join(str(e) for e in errors) + "]"
