"""
Validation

Declarative, data-driven validation of attribute mappings.
"""

from tolkbook.validation.rules import Constraint, dump_rules, parse_rules
from tolkbook.validation.validator import Validator, validate

__all__ = ["Constraint", "Validator", "dump_rules", "parse_rules", "validate"]
