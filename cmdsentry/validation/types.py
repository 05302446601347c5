"""
cmdsentry/validation/types.py

Parameter signatures and validation outcomes.

Declared parameter types arrive as free-form strings ("string",
"vscode.Uri[]", "string|number"). They are parsed once into a closed
ParameterType: one of the primitive kinds, a resource-locator kind, or a
UNION whose members are tried left to right.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from cmdsentry.host.uri import ResourceUri


class TypeKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    URI = "uri"
    URI_ARRAY = "uri[]"
    UNION = "union"
    UNKNOWN = "unknown"


# Aliases accepted in declared signatures (compared lower-cased)
_TYPE_ALIASES: Dict[str, TypeKind] = {
    "string": TypeKind.STRING,
    "str": TypeKind.STRING,
    "number": TypeKind.NUMBER,
    "int": TypeKind.NUMBER,
    "integer": TypeKind.NUMBER,
    "float": TypeKind.NUMBER,
    "boolean": TypeKind.BOOLEAN,
    "bool": TypeKind.BOOLEAN,
    "object": TypeKind.OBJECT,
    "dict": TypeKind.OBJECT,
    "array": TypeKind.ARRAY,
    "list": TypeKind.ARRAY,
    "uri": TypeKind.URI,
    "vscode.uri": TypeKind.URI,
    "path": TypeKind.URI,
    "uri[]": TypeKind.URI_ARRAY,
    "vscode.uri[]": TypeKind.URI_ARRAY,
    "path[]": TypeKind.URI_ARRAY,
}


@dataclass(frozen=True)
class ParameterType:
    kind: TypeKind
    name: str
    members: Tuple["ParameterType", ...] = ()

    @classmethod
    def parse(cls, declared: str) -> "ParameterType":
        text = (declared or "").strip()
        if "|" in text:
            members = tuple(cls.parse(part) for part in text.split("|") if part.strip())
            return cls(kind=TypeKind.UNION, name=text, members=members)
        kind = _TYPE_ALIASES.get(text.lower(), TypeKind.UNKNOWN)
        return cls(kind=kind, name=text)

    @property
    def candidates(self) -> List[str]:
        return [m.name for m in self.members]

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class ParameterSpec:
    """One entry of a command's declared signature."""
    name: str
    type: ParameterType
    required: bool = False
    description: Optional[str] = None
    default: Any = None

    @classmethod
    def of(cls, name: str, declared_type: str, required: bool = False, **kwargs: Any) -> "ParameterSpec":
        return cls(name=name, type=ParameterType.parse(declared_type), required=required, **kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParameterSpec":
        return cls.of(
            data["name"],
            str(data.get("type", "unknown")),
            required=bool(data.get("required", False)),
            description=data.get("description"),
            default=data.get("default"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.name,
            "required": self.required,
            "description": self.description,
            "default": self.default,
        }


class ValidationCode(str, Enum):
    # Errors
    REQUIRED_PARAMETER_MISSING = "REQUIRED_PARAMETER_MISSING"
    EMPTY_REQUIRED_STRING = "EMPTY_REQUIRED_STRING"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    INVALID_URI_FORMAT = "INVALID_URI_FORMAT"
    INVALID_URI_TYPE = "INVALID_URI_TYPE"
    INVALID_URI_ARRAY_ELEMENT = "INVALID_URI_ARRAY_ELEMENT"
    UNION_TYPE_MISMATCH = "UNION_TYPE_MISMATCH"

    # Warnings
    TYPE_CONVERSION = "TYPE_CONVERSION"
    VERY_LONG_STRING = "VERY_LONG_STRING"
    PATH_TO_URI_CONVERSION = "PATH_TO_URI_CONVERSION"
    STRING_TO_URI_CONVERSION = "STRING_TO_URI_CONVERSION"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    UNKNOWN_TYPE = "UNKNOWN_TYPE"
    UNEXPECTED_PARAMETER = "UNEXPECTED_PARAMETER"


@dataclass(frozen=True)
class ValidationIssue:
    parameter_name: str
    message: str
    code: ValidationCode
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"parameter": self.parameter_name, "message": self.message, "code": self.code.value}
        if self.suggestion:
            data["suggestion"] = self.suggestion
        return data


@dataclass
class ValidationOutcome:
    valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    coerced_values: Dict[str, Any] = field(default_factory=dict)

    def error_codes(self) -> List[ValidationCode]:
        return [e.code for e in self.errors]

    def warning_codes(self) -> List[ValidationCode]:
        return [w.code for w in self.warnings]

    def format_errors(self) -> str:
        if not self.errors:
            return "No validation errors"
        lines = []
        for error in self.errors:
            line = f"• {error.message}"
            if error.suggestion:
                line += f" ({error.suggestion})"
            lines.append(line)
        return "Validation failed:\n" + "\n".join(lines)

    def format_warnings(self) -> str:
        if not self.warnings:
            return "No validation warnings"
        return "Validation warnings:\n" + "\n".join(f"• {w.message}" for w in self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "coerced_values": {k: _plain(v) for k, v in self.coerced_values.items()},
        }


def _plain(value: Any) -> Any:
    if isinstance(value, ResourceUri):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value
