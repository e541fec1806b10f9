"""
Core data structures for the validation system.

Loading a map never stops at the first broken brush.  Each isolated failure
is recorded here instead:
- Severity: how bad a finding is (INFO, WARN, FAIL)
- ValidationStage: where in the pipeline it was found
- ValidationIssue: one finding, tied to a solid/side/file where known
- ValidationResult: all findings of a run, with pass/fail status
- ValidationError: raised instead of returning when ``fail_fast`` is set
"""

from collections import Counter
from dataclasses import asdict, dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional


class Severity(Enum):
    """Validation issue severity levels.

    - INFO: Informational only
    - WARN: A face or displacement was dropped or degraded; the map still loads
    - FAIL: A whole brush or solid was rejected
    """
    INFO = auto()
    WARN = auto()
    FAIL = auto()

    def __str__(self) -> str:
        return self.name


class ValidationStage(Enum):
    """Pipeline stages where issues are found.

    - PARSE: Reading solids and sides out of the VMF
    - BUILD: Clipping brushes and meshing displacements
    - EXPORT: Writing render buffers or OBJ files
    """
    PARSE = "parse"
    BUILD = "build"
    EXPORT = "export"

    def __str__(self) -> str:
        return self.value


@dataclass
class ValidationIssue:
    """A single finding.

    Attributes:
        severity: Issue severity (INFO, WARN, FAIL)
        code: Rule code (e.g., "BRUSH-002")
        message: Human-readable description
        rule_reference: Short name of the rule that produced the issue
        remediation: Optional suggested fix
        location: Free-form position ("brush 12 face 3", "solid 8", ...)
        brush_id: Solid id, when known
        face_id: Side id, when known
        file_path: Source map, when known
    """
    severity: Severity
    code: str
    message: str
    rule_reference: str
    remediation: Optional[str] = None
    location: Optional[str] = None
    brush_id: Optional[int] = None
    face_id: Optional[int] = None
    file_path: Optional[str] = None

    def format(self) -> str:
        """One report line.

        ``[SEVERITY] CODE brush=B face=F file=P :: message :: fix=FIX``; the
        location stands in for the brush when there is no brush id.
        """
        if self.brush_id is not None:
            brush = str(self.brush_id)
        else:
            brush = self.location or "-"
        face = "-" if self.face_id is None else str(self.face_id)
        return (
            f"[{self.severity}] {self.code} brush={brush} face={face} "
            f"file={self.file_path or '-'} :: {self.message} :: "
            f"fix={self.remediation or 'N/A'}"
        )

    def __str__(self) -> str:
        return self.format()


@dataclass
class ValidationResult:
    """Issues collected over one stage or one whole run.

    ``passed`` is True while no FAIL issue has been added.
    """
    issues: List[ValidationIssue] = field(default_factory=list)
    stage: Optional[ValidationStage] = None

    def _with_severity(self, severity: Severity) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == severity]

    @property
    def failed(self) -> bool:
        return any(i.severity == Severity.FAIL for i in self.issues)

    @property
    def passed(self) -> bool:
        return not self.failed

    @property
    def errors(self) -> List[ValidationIssue]:
        return self._with_severity(Severity.FAIL)

    @property
    def warnings(self) -> List[ValidationIssue]:
        return self._with_severity(Severity.WARN)

    @property
    def infos(self) -> List[ValidationIssue]:
        return self._with_severity(Severity.INFO)

    def add_issue(self, issue: ValidationIssue) -> None:
        self.issues.append(issue)

    def merge(self, other: 'ValidationResult') -> 'ValidationResult':
        """Append the issues of ``other``; returns self for chaining."""
        self.issues.extend(other.issues)
        return self

    def set_file_path(self, file_path: str) -> None:
        """Attach the source map to every issue that has no file yet."""
        for issue in self.issues:
            if issue.file_path is None:
                issue.file_path = file_path

    def codes(self) -> List[str]:
        """Rule codes of all issues, in the order they were added."""
        return [i.code for i in self.issues]

    def code_counts(self) -> Dict[str, int]:
        """Number of issues per rule code, most frequent first."""
        return dict(Counter(self.codes()).most_common())

    def issues_for_brush(self, brush_id: int) -> List[ValidationIssue]:
        return [i for i in self.issues if i.brush_id == brush_id]

    def report(self) -> str:
        """Multi-line report: status line, per-code counts, then issues by severity."""
        if not self.issues:
            return "Validation passed: No issues found"

        stage = f" ({self.stage})" if self.stage else ""
        status = "PASSED" if self.passed else "FAILED"
        counts = ", ".join(f"{code} x{n}" for code, n in self.code_counts().items())
        lines = [
            f"Validation {status}{stage}: {len(self.issues)} issue(s)",
            f"By rule: {counts}",
            "-" * 60,
        ]
        for severity in (Severity.FAIL, Severity.WARN, Severity.INFO):
            group = self._with_severity(severity)
            if group:
                lines.append(f"\n{severity.name} ({len(group)}):")
                lines.extend(issue.format() for issue in group)
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """JSON-ready summary with every issue."""
        issues = []
        for issue in self.issues:
            data = asdict(issue)
            data['severity'] = str(issue.severity)
            issues.append(data)
        return {
            'passed': self.passed,
            'stage': str(self.stage) if self.stage else None,
            'issue_count': len(self.issues),
            'fail_count': len(self.errors),
            'warn_count': len(self.warnings),
            'info_count': len(self.infos),
            'codes': self.code_counts(),
            'issues': issues,
        }


class ValidationError(Exception):
    """A run produced FAIL issues and ``fail_fast`` was requested.

    Attributes:
        result: The ValidationResult that caused the failure
    """

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(result.report())
