"""Typed, severity-ranked diagnostics produced while building a graph."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional


class IssueSeverity(str, Enum):
    MAJOR = "Major"
    MINOR = "Minor"
    NOTE = "Note"


class IssueType(str, Enum):
    INVALID_REQUIREMENT_ID = "InvalidRequirementId"
    INVALID_PARENT = "InvalidParent"
    INVALID_REQUIREMENT_REFERENCE = "InvalidRequirementReference"
    INVALID_REQUIREMENT_IN_CODE = "InvalidRequirementInCode"
    MISSING_REQUIREMENT_IN_CODE = "MissingRequirementInCode"
    MISSING_ATTRIBUTE = "MissingAttribute"
    UNKNOWN_ATTRIBUTE = "UnknownAttribute"
    INVALID_ATTRIBUTE_VALUE = "InvalidAttributeValue"
    REQ_TESTED_BUT_NOT_IMPLEMENTED = "ReqTestedButNotImplemented"
    REQ_NOT_IMPLEMENTED = "ReqNotImplemented"
    REQ_NOT_TESTED = "ReqNotTested"
    NO_SHALL_IN_BODY = "NoShallInBody"
    MANY_SHALL_IN_BODY = "ManyShallInBody"
    SHALL_IN_RATIONALE = "ShallInRationale"
    DUPLICATE_FLOW_ID = "DuplicateFlowId"
    INVALID_FLOW_ID = "InvalidFlowId"
    MISSING_FLOW_ID = "MissingFlowId"
    FLOW_ID_OF_DIFFERENT_ITEM = "FlowIdOfDifferentItem"
    FLOW_NOT_IMPLEMENTED = "FlowNotImplemented"
    INVALID_FLOW_DIRECTION = "InvalidFlowDirection"


# Every issue type not listed here defaults to Major.
DEFAULT_SEVERITIES: Dict[IssueType, IssueSeverity] = {
    IssueType.REQ_NOT_IMPLEMENTED: IssueSeverity.NOTE,
    IssueType.REQ_NOT_TESTED: IssueSeverity.NOTE,
    IssueType.NO_SHALL_IN_BODY: IssueSeverity.NOTE,
    IssueType.MANY_SHALL_IN_BODY: IssueSeverity.NOTE,
    IssueType.SHALL_IN_RATIONALE: IssueSeverity.NOTE,
    IssueType.FLOW_NOT_IMPLEMENTED: IssueSeverity.NOTE,
}


@dataclass(frozen=True)
class Issue:
    """A single recoverable finding, serialised for reporting tools."""

    repo_name: str
    path: str
    line: int
    description: str
    severity: IssueSeverity
    type: IssueType

    def to_dict(self) -> Dict[str, object]:
        return {
            "repo_name": self.repo_name,
            "path": self.path,
            "line": self.line,
            "description": self.description,
            "severity": self.severity.value,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> "Issue":
        line = payload.get("line", 0)
        if not isinstance(line, int):
            raise ValueError(f"Issue line must be an integer, got {line!r}")
        return cls(
            repo_name=str(payload.get("repo_name", "")),
            path=str(payload.get("path", "")),
            line=line,
            description=str(payload.get("description", "")),
            severity=IssueSeverity(payload.get("severity")),
            type=IssueType(payload.get("type")),
        )


class IssueReporter:
    """Collects issues in emission order, applying configured severity overrides."""

    def __init__(self, overrides: Optional[Mapping[IssueType, IssueSeverity]] = None) -> None:
        self._overrides: Dict[IssueType, IssueSeverity] = dict(overrides or {})
        self.issues: List[Issue] = []

    def severity_for(self, issue_type: IssueType) -> IssueSeverity:
        if issue_type in self._overrides:
            return self._overrides[issue_type]
        return DEFAULT_SEVERITIES.get(issue_type, IssueSeverity.MAJOR)

    def report(
        self,
        issue_type: IssueType,
        description: str,
        *,
        repo_name: str = "",
        path: str = "",
        line: int = 0,
    ) -> Issue:
        issue = Issue(
            repo_name=repo_name,
            path=path,
            line=line,
            description=description,
            severity=self.severity_for(issue_type),
            type=issue_type,
        )
        self.issues.append(issue)
        return issue


def count_by_severity(issues: Iterable[Issue]) -> Dict[IssueSeverity, int]:
    """Return issue counts for every severity, including zero counts."""
    counts = Counter(issue.severity for issue in issues)
    return {severity: counts.get(severity, 0) for severity in IssueSeverity}


__all__ = [
    "DEFAULT_SEVERITIES",
    "Issue",
    "IssueReporter",
    "IssueSeverity",
    "IssueType",
    "count_by_severity",
]
