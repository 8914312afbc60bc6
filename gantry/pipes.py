"""
Pipes - per-argument transformation and validation.

Attached to parameter markers (``Param("id", ParseIntPipe())``) and run
after the value is resolved. A pipe that rejects a value raises
``PipeValidationError``, which the filter layer maps to 400.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Pattern, Union

from .faults import PipeValidationError


class Pipe:
    """Base pipe. Returns the value unchanged."""

    def transform(self, value: Any, metadata: Any = None) -> Any:
        return value


def _field(metadata: Any) -> Optional[str]:
    return getattr(metadata, "key", None) or getattr(metadata, "name", None)


class ParseIntPipe(Pipe):
    """Parse an integer, optionally bounded."""

    def __init__(self, min: Optional[int] = None, max: Optional[int] = None, radix: int = 10):
        self.min = min
        self.max = max
        self.radix = radix

    def transform(self, value: Any, metadata: Any = None) -> int:
        field = _field(metadata)
        if value is None or value == "":
            raise PipeValidationError("Value is required for integer parsing", field)
        if isinstance(value, bool):
            raise PipeValidationError(f"'{value}' is not a valid integer", field)
        try:
            parsed = value if isinstance(value, int) else int(str(value).strip(), self.radix)
        except ValueError:
            raise PipeValidationError(f"'{value}' is not a valid integer", field) from None

        if self.min is not None and parsed < self.min:
            raise PipeValidationError(f"Value must be at least {self.min}", field)
        if self.max is not None and parsed > self.max:
            raise PipeValidationError(f"Value must not exceed {self.max}", field)
        return parsed


class ParseFloatPipe(Pipe):
    """Parse a float, optionally bounded and rounded."""

    def __init__(self, min: Optional[float] = None, max: Optional[float] = None, precision: Optional[int] = None):
        self.min = min
        self.max = max
        self.precision = precision

    def transform(self, value: Any, metadata: Any = None) -> float:
        field = _field(metadata)
        if value is None or value == "":
            raise PipeValidationError("Value is required for float parsing", field)
        try:
            parsed = float(value)
        except (TypeError, ValueError):
            raise PipeValidationError(f"'{value}' is not a valid number", field) from None
        if parsed != parsed:
            raise PipeValidationError(f"'{value}' is not a valid number", field)

        if self.min is not None and parsed < self.min:
            raise PipeValidationError(f"Value must be at least {self.min}", field)
        if self.max is not None and parsed > self.max:
            raise PipeValidationError(f"Value must not exceed {self.max}", field)
        if self.precision is not None:
            parsed = round(parsed, self.precision)
        return parsed


_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


class ParseBoolPipe(Pipe):
    """Parse common boolean spellings."""

    def transform(self, value: Any, metadata: Any = None) -> bool:
        field = _field(metadata)
        if value is None:
            raise PipeValidationError("Value is required for boolean parsing", field)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
        elif isinstance(value, (int, float)):
            return value != 0
        raise PipeValidationError(f"'{value}' is not a valid boolean value", field)


# ============================================================================
# Schema validation
# ============================================================================

_TYPES = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list, tuple),
}


@dataclass
class ValidationRule:
    """
    Constraints for one field.

    ``custom`` returns ``True`` to accept, or ``False``/a message to reject.
    """
    required: bool = False
    type: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[Union[str, Pattern[str]]] = None
    custom: Optional[Callable[[Any], Union[bool, str]]] = None


class ValidationPipe(Pipe):
    """
    Validate a dict against a schema of ``ValidationRule``.

    With ``whitelist`` (default) only schema fields are returned and
    unknown keys are dropped; with ``forbid_non_whitelisted`` they are
    errors instead. All failures are collected into a single
    ``PipeValidationError``.
    """

    def __init__(
        self,
        schema: Dict[str, ValidationRule],
        whitelist: bool = True,
        forbid_non_whitelisted: bool = False,
        transform_types: bool = False,
    ):
        self.schema = schema
        self.whitelist = whitelist
        self.forbid_non_whitelisted = forbid_non_whitelisted
        self.transform_types = transform_types

    def transform(self, value: Any, metadata: Any = None) -> Dict[str, Any]:
        if value is None:
            raise PipeValidationError("Value cannot be null or undefined")
        if not isinstance(value, dict):
            raise PipeValidationError("Validation pipe expects an object")

        result: Dict[str, Any] = {} if self.whitelist else dict(value)
        errors: List[str] = []
        fields: List[str] = []

        for name, rule in self.schema.items():
            try:
                validated = self.validate_field(name, value.get(name), rule)
            except PipeValidationError as e:
                errors.append(e.message)
                fields.append(name)
                continue
            if name in value:
                result[name] = validated

        if self.forbid_non_whitelisted:
            for name in value:
                if name not in self.schema:
                    errors.append(f"Unknown property: {name}")
                    fields.append(name)

        if errors:
            error = PipeValidationError(f"Validation failed: {', '.join(errors)}", fields[0])
            error.fields = fields
            raise error
        return result

    def validate_field(self, name: str, value: Any, rule: ValidationRule) -> Any:
        if value is None or value == "":
            if rule.required:
                raise PipeValidationError(f"{name} is required", name)
            return value

        if rule.type:
            value = self._check_type(name, value, rule.type)

        if isinstance(value, str):
            if rule.min_length is not None and len(value) < rule.min_length:
                raise PipeValidationError(f"{name} must be at least {rule.min_length} characters long", name)
            if rule.max_length is not None and len(value) > rule.max_length:
                raise PipeValidationError(f"{name} must not exceed {rule.max_length} characters", name)
            if rule.pattern is not None and not re.search(rule.pattern, value):
                raise PipeValidationError(f"{name} does not match the required pattern", name)

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if rule.min is not None and value < rule.min:
                raise PipeValidationError(f"{name} must be at least {rule.min}", name)
            if rule.max is not None and value > rule.max:
                raise PipeValidationError(f"{name} must not exceed {rule.max}", name)

        if rule.custom is not None:
            outcome = rule.custom(value)
            if outcome is not True:
                message = outcome if isinstance(outcome, str) else f"{name} failed custom validation"
                raise PipeValidationError(message, name)

        return value

    def _check_type(self, name: str, value: Any, expected: str) -> Any:
        if self.transform_types:
            if expected == "string" and not isinstance(value, str):
                return str(value)
            if expected == "number" and not isinstance(value, (int, float)):
                try:
                    return float(value)
                except (TypeError, ValueError):
                    raise PipeValidationError(f"{name} must be a valid number", name) from None
            if expected == "boolean" and not isinstance(value, bool):
                if value in ("true", "1", 1):
                    return True
                if value in ("false", "0", 0):
                    return False
                raise PipeValidationError(f"{name} must be a valid boolean", name)

        allowed = _TYPES.get(expected)
        if allowed is None:
            return value
        if not isinstance(value, allowed) or (expected == "number" and isinstance(value, bool)):
            article = "an" if expected[0] in "aeiou" else "a"
            raise PipeValidationError(f"{name} must be {article} {expected}", name)
        return value
