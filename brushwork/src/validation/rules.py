"""
Validation rule definitions.

Each rule has:
- Code: Unique identifier (e.g., "BRUSH-002")
- Severity: FAIL, WARN, or INFO
- Rule reference: Short name of the check
- Message template: Human-readable description
- Remediation: Suggested fix

Rules are organized by category:
- BRUSH: Brush clipping
- DISP: Displacement surfaces
- VMF: Map file structure
- UV: Texture axes
"""

from dataclasses import dataclass
from typing import Optional

from .core import Severity, ValidationIssue


@dataclass(frozen=True)
class ValidationRule:
    """Definition of a validation rule.

    Attributes:
        code: Unique rule code (e.g., "BRUSH-001")
        severity: Default severity for this rule
        rule_reference: Short name of the check
        message_template: Template for error message (use {placeholders})
        remediation_template: Template for suggested fix
        description: Full description of the rule
    """
    code: str
    severity: Severity
    rule_reference: str
    message_template: str
    remediation_template: Optional[str] = None
    description: Optional[str] = None

    def format_message(self, **kwargs) -> str:
        """Format the message template with provided values."""
        return self.message_template.format(**kwargs)

    def format_remediation(self, **kwargs) -> Optional[str]:
        """Format the remediation template with provided values."""
        if self.remediation_template:
            return self.remediation_template.format(**kwargs)
        return None

    def issue(self, location: Optional[str] = None, brush_id: Optional[int] = None,
              face_id: Optional[int] = None, file_path: Optional[str] = None,
              **kwargs) -> ValidationIssue:
        """Create an issue for this rule, filling both templates from ``kwargs``."""
        return ValidationIssue(
            severity=self.severity,
            code=self.code,
            message=self.format_message(**kwargs),
            rule_reference=self.rule_reference,
            remediation=self.format_remediation(**kwargs),
            location=location,
            brush_id=brush_id,
            face_id=face_id,
            file_path=file_path,
        )


# =============================================================================
# BRUSH RULES (BRUSH)
# =============================================================================

BRUSH_001 = ValidationRule(
    code="BRUSH-001",
    severity=Severity.WARN,
    rule_reference="Face plane points must not be collinear",
    message_template="Degenerate plane points, face ignored: {points}",
    remediation_template="Move one of the three plane points off the line through the others",
    description="A face whose three plane points span no plane is dropped from its brush"
)

BRUSH_002 = ValidationRule(
    code="BRUSH-002",
    severity=Severity.FAIL,
    rule_reference="Brush faces must enclose a volume",
    message_template="Brush is not closed: {details}",
    remediation_template="Add the missing faces so the planes bound a finite volume",
    description="Some of the seed cube survived clipping, so the brush is unbounded"
)

BRUSH_003 = ValidationRule(
    code="BRUSH-003",
    severity=Severity.FAIL,
    rule_reference="Brush must be convex and non-degenerate",
    message_template="Clipping failed: {details}",
    remediation_template="Rebuild the brush in the editor; it is likely non-convex or near-degenerate",
    description="A clip produced a broken cap loop or a face with several inside runs"
)

# =============================================================================
# DISPLACEMENT RULES (DISP)
# =============================================================================

DISP_001 = ValidationRule(
    code="DISP-001",
    severity=Severity.WARN,
    rule_reference="Displacement start position must match a face corner",
    message_template="Displacement rejected: {details}",
    remediation_template="Check that the displaced face is a quad and startposition is one of its corners",
    description="The grid origin could not be matched to a quad corner"
)

DISP_002 = ValidationRule(
    code="DISP-002",
    severity=Severity.FAIL,
    rule_reference="Displacement grids must be (2^power+1) square",
    message_template="Inconsistent displacement grid: {details}",
    remediation_template="Re-save the map; the dispinfo rows don't match the power",
    description="A dispinfo row or row count doesn't match the displacement power"
)

# =============================================================================
# MAP FILE RULES (VMF)
# =============================================================================

VMF_001 = ValidationRule(
    code="VMF-001",
    severity=Severity.FAIL,
    rule_reference="Solids must be well formed",
    message_template="Solid could not be parsed: {details}",
    remediation_template="Fix or remove the solid",
    description="A solid or one of its sides is missing or has invalid keys"
)

# =============================================================================
# TEXTURE AXIS RULES (UV)
# =============================================================================

UV_001 = ValidationRule(
    code="UV-001",
    severity=Severity.INFO,
    rule_reference="Texture axes should be unit length",
    message_template="Texture axis isn't normalized: {axis}",
    remediation_template="Reset the face's texture alignment",
    description="A uaxis/vaxis direction whose squared length is not within 0.1 of 1"
)


# =============================================================================
# RULE REGISTRY
# =============================================================================

ALL_RULES = {
    'BRUSH-001': BRUSH_001,
    'BRUSH-002': BRUSH_002,
    'BRUSH-003': BRUSH_003,
    'DISP-001': DISP_001,
    'DISP-002': DISP_002,
    'VMF-001': VMF_001,
    'UV-001': UV_001,
}


def get_rule(code: str) -> Optional[ValidationRule]:
    """Get a rule by its code.

    Args:
        code: Rule code (e.g., "BRUSH-001")

    Returns:
        ValidationRule if found, None otherwise
    """
    return ALL_RULES.get(code)


def get_rules_by_category(prefix: str) -> list:
    """Get all rules with a given prefix."""
    return [rule for code, rule in ALL_RULES.items() if code.startswith(prefix)]
