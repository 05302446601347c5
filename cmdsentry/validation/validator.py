"""
cmdsentry/validation/validator.py

Purpose:
    Type-check and coerce raw command arguments against a declared signature.

Semantics:
    - Each parameter is validated independently; errors and warnings are
      additive and the outcome is valid iff no errors were produced.
    - A missing required parameter short-circuits that parameter.
    - Rule checks (existence probe, string length) run only after the
      type check for that parameter passed.
    - Existence is advisory: a missing file is a warning, never an error.
"""

from __future__ import annotations

import logging
import math
from pathlib import PurePath
from typing import Any, Callable, Dict, List, Optional, Tuple

from cmdsentry.host.uri import ResourceUri
from .types import (
    ParameterSpec,
    ParameterType,
    TypeKind,
    ValidationCode,
    ValidationIssue,
    ValidationOutcome,
)

logger = logging.getLogger(__name__)

VERY_LONG_STRING_THRESHOLD = 10_000

_TRUE_LITERALS = {"true", "1"}
_FALSE_LITERALS = {"false", "0"}

FileProbe = Callable[[str], bool]


class _Check:
    """Result of validating one value against one type (internal)."""

    __slots__ = ("ok", "value", "error", "warnings")

    def __init__(
        self,
        ok: bool,
        value: Any = None,
        error: Optional[ValidationIssue] = None,
        warnings: Optional[List[ValidationIssue]] = None,
    ):
        self.ok = ok
        self.value = value
        self.error = error
        self.warnings = warnings or []

    @classmethod
    def passed(cls, value: Any, *warnings: ValidationIssue) -> "_Check":
        return cls(True, value, warnings=list(warnings))

    @classmethod
    def failed(cls, error: ValidationIssue) -> "_Check":
        return cls(False, error=error)


def _is_missing(values: Dict[str, Any], name: str) -> bool:
    return name not in values or values[name] is None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ParameterValidator:
    """
    Validates raw parameter maps against a command signature.

    The validator is stateless: ``validate`` is a pure function of its inputs
    (plus the optional file probe).
    """

    def validate(
        self,
        signature: List[ParameterSpec],
        values: Dict[str, Any],
        file_probe: Optional[FileProbe] = None,
        base_dir: Optional[str] = None,
    ) -> ValidationOutcome:
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []
        coerced: Dict[str, Any] = {}

        for spec in signature:
            if _is_missing(values, spec.name):
                if spec.required:
                    errors.append(ValidationIssue(
                        spec.name,
                        f"Required parameter '{spec.name}' is missing",
                        ValidationCode.REQUIRED_PARAMETER_MISSING,
                        suggestion=f"Provide a value of type {spec.type}",
                    ))
                continue

            check = self._check_type(spec.name, spec.type, values[spec.name], base_dir)
            warnings.extend(check.warnings)
            if not check.ok:
                errors.append(check.error)
                continue

            rule_errors, rule_warnings = self._check_rules(spec, check.value, file_probe)
            errors.extend(rule_errors)
            warnings.extend(rule_warnings)
            if not rule_errors:
                coerced[spec.name] = check.value

        declared = {spec.name for spec in signature}
        for name in values:
            if name not in declared:
                warnings.append(ValidationIssue(
                    name,
                    f"Parameter '{name}' is not part of the command signature",
                    ValidationCode.UNEXPECTED_PARAMETER,
                    suggestion="Remove it or check the parameter name",
                ))

        outcome = ValidationOutcome(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            coerced_values=coerced,
        )
        if errors:
            logger.debug(f"[ParameterValidator] {len(errors)} error(s): {outcome.error_codes()}")
        return outcome

    # ------------------------------------------------------------------
    # Type checks
    # ------------------------------------------------------------------

    def _check_type(self, name: str, ptype: ParameterType, value: Any, base_dir: Optional[str]) -> _Check:
        kind = ptype.kind
        if kind == TypeKind.STRING:
            return self._check_string(name, value)
        if kind == TypeKind.NUMBER:
            return self._check_number(name, value)
        if kind == TypeKind.BOOLEAN:
            return self._check_boolean(name, value)
        if kind == TypeKind.OBJECT:
            if isinstance(value, (str, bytes, bool, int, float)):
                return _Check.failed(self._mismatch(name, "object", value))
            return _Check.passed(value)
        if kind == TypeKind.ARRAY:
            if not isinstance(value, (list, tuple)):
                return _Check.failed(self._mismatch(name, "array", value))
            return _Check.passed(value)
        if kind == TypeKind.URI:
            return self._check_uri(name, value, base_dir)
        if kind == TypeKind.URI_ARRAY:
            return self._check_uri_array(name, value, base_dir)
        if kind == TypeKind.UNION:
            return self._check_union(name, ptype, value, base_dir)

        return _Check.passed(value, ValidationIssue(
            name,
            f"Unknown parameter type '{ptype}' for '{name}'; value passed through unvalidated",
            ValidationCode.UNKNOWN_TYPE,
        ))

    def _mismatch(self, name: str, expected: str, value: Any) -> ValidationIssue:
        return ValidationIssue(
            name,
            f"Parameter '{name}' expected {expected}, got {type(value).__name__}",
            ValidationCode.TYPE_MISMATCH,
            suggestion=f"Provide a {expected} value",
        )

    def _conversion(self, name: str, source: Any, target: str) -> ValidationIssue:
        return ValidationIssue(
            name,
            f"Parameter '{name}' converted from {type(source).__name__} to {target}",
            ValidationCode.TYPE_CONVERSION,
        )

    def _check_string(self, name: str, value: Any) -> _Check:
        if isinstance(value, str):
            return _Check.passed(value)
        if isinstance(value, bool):
            converted = "true" if value else "false"
        else:
            converted = str(value)
        return _Check.passed(converted, self._conversion(name, value, "string"))

    def _check_number(self, name: str, value: Any) -> _Check:
        if _is_number(value):
            if isinstance(value, float) and not math.isfinite(value):
                return _Check.failed(self._mismatch(name, "number", value))
            return _Check.passed(value)
        if isinstance(value, bool):
            return _Check.passed(int(value), self._conversion(name, value, "number"))
        if isinstance(value, str):
            # float() also takes "1_000" digit groups
            if "_" in value:
                return _Check.failed(self._mismatch(name, "number", value))
            try:
                number = float(value.strip())
            except ValueError:
                return _Check.failed(self._mismatch(name, "number", value))
            if not math.isfinite(number):
                return _Check.failed(self._mismatch(name, "number", value))
            if number.is_integer() and "." not in value and "e" not in value.lower():
                number = int(number)
            return _Check.passed(number, self._conversion(name, value, "number"))
        return _Check.failed(self._mismatch(name, "number", value))

    def _check_boolean(self, name: str, value: Any) -> _Check:
        if isinstance(value, bool):
            return _Check.passed(value)
        if isinstance(value, str):
            literal = value.strip().lower()
            if literal in _TRUE_LITERALS:
                return _Check.passed(True, self._conversion(name, value, "boolean"))
            if literal in _FALSE_LITERALS:
                return _Check.passed(False, self._conversion(name, value, "boolean"))
        elif _is_number(value):
            if value == 1:
                return _Check.passed(True, self._conversion(name, value, "boolean"))
            if value == 0:
                return _Check.passed(False, self._conversion(name, value, "boolean"))
        return _Check.failed(self._mismatch(name, "boolean", value))

    def _to_uri(self, name: str, value: Any, base_dir: Optional[str]) -> Tuple[Optional[ResourceUri], Optional[ValidationIssue], Optional[ValidationIssue]]:
        """Returns (uri, error, warning)."""
        if isinstance(value, ResourceUri):
            return value, None, None
        if isinstance(value, PurePath):
            value = str(value)
        if not isinstance(value, str):
            return None, ValidationIssue(
                name,
                f"Parameter '{name}' expected a resource locator, got {type(value).__name__}",
                ValidationCode.INVALID_URI_TYPE,
                suggestion="Provide a path string or a URI",
            ), None

        try:
            if ResourceUri.has_scheme(value):
                uri = ResourceUri.parse(value)
                code = ValidationCode.STRING_TO_URI_CONVERSION
            else:
                uri = ResourceUri.file(value, base_dir=base_dir)
                code = ValidationCode.PATH_TO_URI_CONVERSION
        except ValueError as exc:
            return None, ValidationIssue(
                name,
                f"Parameter '{name}' is not a valid path or URI: {exc}",
                ValidationCode.INVALID_URI_FORMAT,
                suggestion="Use an absolute path or a URI such as file:///path/to/file",
            ), None

        return uri, None, ValidationIssue(name, f"Parameter '{name}' converted to {uri}", code)

    def _check_uri(self, name: str, value: Any, base_dir: Optional[str]) -> _Check:
        uri, error, warning = self._to_uri(name, value, base_dir)
        if error:
            return _Check.failed(error)
        return _Check.passed(uri, *([warning] if warning else []))

    def _check_uri_array(self, name: str, value: Any, base_dir: Optional[str]) -> _Check:
        if not isinstance(value, (list, tuple)):
            return _Check.failed(self._mismatch(name, "array of resource locators", value))

        uris: List[ResourceUri] = []
        warnings: List[ValidationIssue] = []
        for index, element in enumerate(value):
            uri, error, warning = self._to_uri(f"{name}[{index}]", element, base_dir)
            if error:
                return _Check.failed(ValidationIssue(
                    name,
                    f"Element {index} of '{name}' is invalid: {error.message}",
                    ValidationCode.INVALID_URI_ARRAY_ELEMENT,
                    suggestion=error.suggestion,
                ))
            if warning:
                warnings.append(warning)
            uris.append(uri)
        return _Check(True, uris, warnings=warnings)

    def _check_union(self, name: str, ptype: ParameterType, value: Any, base_dir: Optional[str]) -> _Check:
        for member in ptype.members:
            check = self._check_type(name, member, value, base_dir)
            if check.ok:
                return check
        candidates = ", ".join(ptype.candidates)
        return _Check.failed(ValidationIssue(
            name,
            f"Parameter '{name}' does not match any of: {candidates}",
            ValidationCode.UNION_TYPE_MISMATCH,
            suggestion=f"Provide a value of one of: {candidates}",
        ))

    # ------------------------------------------------------------------
    # Rule checks
    # ------------------------------------------------------------------

    def _check_rules(
        self,
        spec: ParameterSpec,
        value: Any,
        file_probe: Optional[FileProbe],
    ) -> Tuple[List[ValidationIssue], List[ValidationIssue]]:
        errors: List[ValidationIssue] = []
        warnings: List[ValidationIssue] = []

        if spec.type.kind == TypeKind.STRING and isinstance(value, str):
            if spec.required and value == "":
                errors.append(ValidationIssue(
                    spec.name,
                    f"Required parameter '{spec.name}' cannot be empty",
                    ValidationCode.EMPTY_REQUIRED_STRING,
                    suggestion="Provide a non-empty string",
                ))
            elif len(value) > VERY_LONG_STRING_THRESHOLD:
                warnings.append(ValidationIssue(
                    spec.name,
                    f"Parameter '{spec.name}' is very long ({len(value)} characters)",
                    ValidationCode.VERY_LONG_STRING,
                ))

        if file_probe is not None:
            uris: List[ResourceUri] = []
            if isinstance(value, ResourceUri):
                uris = [value]
            elif isinstance(value, list) and all(isinstance(v, ResourceUri) for v in value):
                uris = list(value)
            for uri in uris:
                if uri.is_file and not self._probe(file_probe, uri):
                    warnings.append(ValidationIssue(
                        spec.name,
                        f"File does not exist: {uri.fs_path}",
                        ValidationCode.FILE_NOT_FOUND,
                        suggestion="Check the path; the command may create it",
                    ))

        return errors, warnings

    def _probe(self, file_probe: FileProbe, uri: ResourceUri) -> bool:
        try:
            return bool(file_probe(uri.fs_path))
        except Exception as exc:
            # An unanswerable probe is treated as "exists" (advisory only)
            logger.debug(f"[ParameterValidator] File probe failed for {uri}: {exc}")
            return True
