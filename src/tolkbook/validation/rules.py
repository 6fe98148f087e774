"""
Rule sets as data.

A rule set maps a field name to an ordered list of Constraint
descriptors. They can be written compactly as pipe-separated strings:

    {"duration": "required|integer|min:1", "immediate": ["required", "in:yes,no"]}

parse_rules() normalizes either form into Constraint lists. Descriptors are
plain frozen dataclasses, so rule sets can be compared, stored and
serialized without involving the validator.
"""

from dataclasses import dataclass
from typing import Mapping, Sequence, Union

# Constraints that are evaluated even when the value is absent
IMPLICIT = frozenset({"required", "required_if"})

# Constraints that change how a field is evaluated instead of checking it
MARKERS = frozenset({"nullable", "bail"})

KNOWN = IMPLICIT | MARKERS | frozenset(
    {
        "string",
        "integer",
        "numeric",
        "boolean",
        "email",
        "date",
        "array",
        "min",
        "max",
        "between",
        "in",
        "exists",
    }
)

ARITY = {
    "required_if": 2,
    "min": 1,
    "max": 1,
    "between": 2,
    "exists": 2,
}


@dataclass(frozen=True)
class Constraint:
    name: str
    args: tuple[str, ...] = ()

    @classmethod
    def parse(cls, expression: str) -> "Constraint":
        """Parse 'name' or 'name:arg1,arg2' into a Constraint."""
        name, _, raw_args = expression.strip().partition(":")
        args = tuple(a.strip() for a in raw_args.split(",")) if raw_args else ()
        return cls(name=name.strip().lower(), args=args).checked()

    def checked(self) -> "Constraint":
        if self.name not in KNOWN:
            raise ValueError(f"Unknown validation constraint '{self.name}'")
        expected = ARITY.get(self.name)
        if expected is not None and len(self.args) != expected:
            raise ValueError(
                f"Constraint '{self.name}' takes {expected} argument(s), got {len(self.args)}"
            )
        if self.name == "in" and not self.args:
            raise ValueError("Constraint 'in' needs at least one option")
        return self

    @property
    def implicit(self) -> bool:
        return self.name in IMPLICIT

    def __str__(self) -> str:
        if not self.args:
            return self.name
        return f"{self.name}:{','.join(self.args)}"


RuleSpec = Union[str, Sequence[Union[str, Constraint]]]
RuleSet = dict[str, list[Constraint]]


def parse_field_rules(spec: RuleSpec) -> list[Constraint]:
    """Normalize one field's rules into an ordered Constraint list."""
    if isinstance(spec, str):
        items = [part for part in spec.split("|") if part.strip()]
    else:
        items = list(spec)

    constraints = []
    for item in items:
        if isinstance(item, Constraint):
            constraints.append(item.checked())
        else:
            constraints.append(Constraint.parse(item))
    return constraints


def parse_rules(rules: Mapping[str, RuleSpec]) -> RuleSet:
    """Normalize a whole rule set, keeping field declaration order."""
    return {field: parse_field_rules(spec) for field, spec in rules.items()}


def dump_rules(rules: Mapping[str, RuleSpec]) -> dict[str, str]:
    """Render a rule set back into its pipe-separated string form."""
    return {
        field: "|".join(str(c) for c in constraints)
        for field, constraints in parse_rules(rules).items()
    }
