"""
Validation engine.

Evaluates a rule set against a data mapping. Every field is checked
independently and every violation is collected, so a failed run reports
all invalid fields at once. The engine never modifies the data it is given.

Usage:
    validator = Validator(data, {"duration": "required|integer|min:1"})
    if validator.fails():
        print(validator.errors)  # {"duration": ["The duration must be at least 1."]}
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping

from psycopg import sql

from tolkbook import db
from tolkbook.errors import ValidationFailed
from tolkbook.validation.rules import MARKERS, Constraint, RuleSpec, parse_rules

PresenceVerifier = Callable[[str, str, Any], bool]

INTEGER_RE = re.compile(r"^[+-]?\d+$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
BOOLEAN_VALUES = {True, False, 0, 1, "0", "1", "true", "false"}

DEFAULT_MESSAGES: dict[str, Any] = {
    "required": "The :attribute field is required.",
    "required_if": "The :attribute field is required when :other is :value.",
    "string": "The :attribute must be a string.",
    "integer": "The :attribute must be an integer.",
    "numeric": "The :attribute must be a number.",
    "boolean": "The :attribute field must be true or false.",
    "email": "The :attribute must be a valid email address.",
    "date": "The :attribute is not a valid date.",
    "array": "The :attribute must be an array.",
    "in": "The selected :attribute is invalid.",
    "exists": "The selected :attribute is invalid.",
    "min": {
        "numeric": "The :attribute must be at least :min.",
        "string": "The :attribute must be at least :min characters.",
        "array": "The :attribute must have at least :min items.",
    },
    "max": {
        "numeric": "The :attribute may not be greater than :max.",
        "string": "The :attribute may not be greater than :max characters.",
        "array": "The :attribute may not have more than :max items.",
    },
    "between": {
        "numeric": "The :attribute must be between :min and :max.",
        "string": "The :attribute must be between :min and :max characters.",
        "array": "The :attribute must have between :min and :max items.",
    },
}


def database_presence_verifier(table: str, column: str, value: Any) -> bool:
    """Check that `table` holds a row whose `column` equals `value`."""
    query = sql.SQL("SELECT 1 FROM {} WHERE {} = %s LIMIT 1").format(
        sql.Identifier(table), sql.Identifier(column)
    )
    return db.fetch_one(query, (value,)) is not None


def is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and value.strip() == "":
        return False
    if isinstance(value, (list, tuple, dict, set)) and len(value) == 0:
        return False
    return True


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _to_number(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    text = str(value).strip()
    if "_" in text:
        return None
    try:
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    # NaN and Infinity parse but can not be compared against bounds
    if not number.is_finite():
        return None
    return number


def _format_number(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(int(value))
    return str(value)


class Validator:
    def __init__(
        self,
        data: Mapping[str, Any],
        rules: Mapping[str, RuleSpec],
        messages: Mapping[str, str] | None = None,
        attribute_names: Mapping[str, str] | None = None,
        presence_verifier: PresenceVerifier | None = None,
    ):
        self.data = data
        self.rules = parse_rules(rules)
        self.custom_messages = dict(messages or {})
        self.attribute_names = dict(attribute_names or {})
        self.presence_verifier = presence_verifier or database_presence_verifier
        self._errors: dict[str, list[str]] | None = None

    def set_attribute_names(self, names: Mapping[str, str]) -> "Validator":
        """Override display names used in messages."""
        self.attribute_names.update(names)
        self._errors = None
        return self

    def passes(self) -> bool:
        self._errors = self._evaluate()
        return not self._errors

    def fails(self) -> bool:
        return not self.passes()

    @property
    def errors(self) -> dict[str, list[str]]:
        if self._errors is None:
            self.passes()
        return {field: list(messages) for field, messages in self._errors.items()}

    def validate(self) -> bool:
        """Return True, or raise ValidationFailed carrying every field's errors."""
        if self.fails():
            raise ValidationFailed(self.errors)
        return True

    def display_name(self, field: str) -> str:
        return self.attribute_names.get(field, field.replace("_", " "))

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def _evaluate(self) -> dict[str, list[str]]:
        errors = {}
        for field, constraints in self.rules.items():
            messages = self._evaluate_field(field, constraints)
            if messages:
                errors[field] = messages
        return errors

    def _evaluate_field(self, field: str, constraints: list[Constraint]) -> list[str]:
        value = self.data.get(field)
        present = is_present(value)
        bail = any(c.name == "bail" for c in constraints)

        messages = []
        for constraint in constraints:
            if constraint.name in MARKERS:
                continue
            # Absent values are only checked by required-style constraints
            if not present and not constraint.implicit:
                continue
            if self._check(field, value, constraint, constraints):
                continue
            messages.append(self._message(field, value, constraint, constraints))
            if bail:
                break
        return messages

    def _check(self, field: str, value: Any, constraint: Constraint, constraints) -> bool:
        name = constraint.name
        args = constraint.args

        if name == "required":
            return is_present(value)
        if name == "required_if":
            other, expected = args
            if _stringify(self.data.get(other)) != expected:
                return True
            return is_present(value)
        if name == "string":
            return isinstance(value, str)
        if name == "integer":
            if isinstance(value, bool):
                return False
            return isinstance(value, int) or (
                isinstance(value, str) and bool(INTEGER_RE.match(value.strip()))
            )
        if name == "numeric":
            return _to_number(value) is not None and not isinstance(value, (list, dict))
        if name == "boolean":
            return isinstance(value, (bool, int, str)) and value in BOOLEAN_VALUES
        if name == "email":
            return isinstance(value, str) and bool(EMAIL_RE.match(value))
        if name == "date":
            return self._is_date(value)
        if name == "array":
            return isinstance(value, (list, tuple, dict))
        if name == "in":
            return _stringify(value) in args
        if name == "exists":
            table, column = args
            return self.presence_verifier(table, column, value)
        if name in ("min", "max", "between"):
            size = self._size(value, constraints)
            if size is None:
                # The type constraint reports non-numeric values
                return True
            bounds = [_to_number(a) for a in args]
            if any(b is None for b in bounds):
                raise ValueError(f"Constraint '{constraint}' needs numeric arguments")
            if name == "min":
                return size >= bounds[0]
            if name == "max":
                return size <= bounds[0]
            return bounds[0] <= size <= bounds[1]
        raise ValueError(f"Unknown validation constraint '{name}'")

    @staticmethod
    def _is_date(value: Any) -> bool:
        if isinstance(value, (date, datetime)):
            return True
        if not isinstance(value, str):
            return False
        try:
            datetime.fromisoformat(value.strip())
        except ValueError:
            return False
        return True

    @staticmethod
    def _size_kind(value: Any, constraints) -> str:
        if any(c.name in ("integer", "numeric") for c in constraints):
            return "numeric"
        if isinstance(value, (list, tuple, dict)):
            return "array"
        return "string"

    def _size(self, value: Any, constraints) -> Decimal | None:
        kind = self._size_kind(value, constraints)
        if kind == "numeric":
            return _to_number(value)
        if kind == "array":
            return Decimal(len(value))
        return Decimal(len(_stringify(value)))

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def _message(self, field: str, value: Any, constraint: Constraint, constraints) -> str:
        name = constraint.name
        template = self.custom_messages.get(f"{field}.{name}") or self.custom_messages.get(name)
        if template is None:
            template = DEFAULT_MESSAGES[name]
            if isinstance(template, dict):
                template = template[self._size_kind(value, constraints)]

        replacements = {"attribute": self.display_name(field)}
        args = constraint.args
        if name in ("min", "max"):
            replacements[name] = _format_number(_to_number(args[0]))
        elif name == "between":
            replacements["min"] = _format_number(_to_number(args[0]))
            replacements["max"] = _format_number(_to_number(args[1]))
        elif name == "in":
            replacements["values"] = ", ".join(args)
        elif name == "required_if":
            replacements["other"] = self.display_name(args[0])
            replacements["value"] = args[1]

        # Longest placeholder first so :value never eats into :values
        for key in sorted(replacements, key=len, reverse=True):
            template = template.replace(f":{key}", replacements[key])
        return template


def validate(
    data: Mapping[str, Any],
    rules: Mapping[str, RuleSpec],
    messages: Mapping[str, str] | None = None,
    attribute_names: Mapping[str, str] | None = None,
    presence_verifier: PresenceVerifier | None = None,
) -> bool:
    """Validate `data` in one call. Raises ValidationFailed on any violation."""
    return Validator(
        data,
        rules,
        messages=messages,
        attribute_names=attribute_names,
        presence_verifier=presence_verifier,
    ).validate()
