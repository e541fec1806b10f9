"""
Validation package for brushwork.

Collects the non-fatal findings of parsing and building a map.

Public API:
    - ValidationResult, ValidationIssue, Severity: Core result types
    - ValidationStage: Pipeline stage enumeration
    - ValidationError: Exception raised on FAIL issues when fail_fast=True
    - ValidationRule, get_rule(): Rule catalogue
"""

from .core import (
    Severity,
    ValidationStage,
    ValidationIssue,
    ValidationResult,
    ValidationError,
)
from .rules import ValidationRule, get_rule

__all__ = [
    # Core types
    'Severity',
    'ValidationStage',
    'ValidationIssue',
    'ValidationResult',
    'ValidationError',
    # Rules
    'ValidationRule',
    'get_rule',
]
