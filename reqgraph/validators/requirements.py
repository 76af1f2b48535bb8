"""Checks applied to each requirement once the whole graph is known."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from ..config import AttributeRule, AttributeType, Document
from ..diagnostics import IssueReporter, IssueType
from ..models import Graph, ReqVariant, Requirement
from ..parsing import REQ_ID_PATTERN

_SHALL = re.compile(r"\bshall\b", re.IGNORECASE)


def check_requirement(req: Requirement, graph: Graph, reporter: IssueReporter) -> None:
    """Run every per-requirement check on a non-deleted requirement."""
    document = req.document
    if document is None:
        return

    def report(issue_type: IssueType, description: str) -> None:
        reporter.report(
            issue_type, description, repo_name=req.repo_name, path=document.path, line=req.position
        )

    if not document.schema.requirements.search(req.id):
        report(
            IssueType.INVALID_REQUIREMENT_ID,
            f"Requirement `{req.id}` in document `{document.path}` does not match required regexp "
            f"`{document.schema.requirements.pattern}`",
        )

    _check_attributes(req, document, report)
    _check_shall(req, document.path, report)
    _check_parents(req, graph, report)
    _check_body_references(req, graph, report)
    _check_flow_links(req, document, graph, report)


def validate_parent_link(req: Requirement, parent: Requirement) -> Optional[str]:
    """Return why ``parent`` may not be a parent of ``req``, or None when a link rule allows it.

    The document's link rules are tried in order and the first rule whose child
    and parent patterns both apply decides the outcome.
    """
    document = req.document
    link_specs = document.link_specs if document is not None else []
    for link in link_specs:
        child, wanted = link.child, link.parent
        if child.pattern is None or not child.pattern.search(req.id):
            continue
        if child.attr_key:
            value = req.attributes.get(child.attr_key)
            if value is None or child.attr_value is None or not child.attr_value.search(value):
                continue
        if wanted.pattern is None or not wanted.pattern.search(parent.id):
            continue
        if wanted.attr_key:
            value = parent.attributes.get(wanted.attr_key)
            if value is None or wanted.attr_value is None or not wanted.attr_value.search(value):
                return (
                    f"Requirement '{req.id}' has invalid parent link ID '{parent.id}' with attribute "
                    f"value '{wanted.attr_key}'=='{value or ''}'."
                )
        return None
    return f"Requirement '{req.id}' has invalid parent link ID '{parent.id}'."


def _check_attributes(req: Requirement, document: Document, report) -> None:  # type: ignore[no-untyped-def]
    schema = document.schema
    rules: Dict[str, AttributeRule] = (
        schema.attributes if req.variant is ReqVariant.REQUIREMENT else schema.asm_attributes
    )

    any_of: List[str] = []
    any_present = 0
    for name, rule in rules.items():
        if rule.type is AttributeType.ANY:
            any_of.append(name)
        value = req.attributes.get(name, "")
        if not value:
            if rule.type is AttributeType.REQUIRED:
                report(IssueType.MISSING_ATTRIBUTE, f"Requirement '{req.id}' is missing attribute '{name}'.")
            continue
        if rule.type is AttributeType.ANY:
            any_present += 1
        if not rule.value.search(value):
            report(
                IssueType.INVALID_ATTRIBUTE_VALUE,
                f"Requirement '{req.id}' has invalid value '{value}' in attribute '{name}'.",
            )

    if any_of and not any_present:
        report(
            IssueType.MISSING_ATTRIBUTE,
            f"Requirement '{req.id}' is missing at least one of the attributes '{','.join(sorted(any_of))}'.",
        )

    for name in req.attributes:
        if name not in rules:
            report(IssueType.UNKNOWN_ATTRIBUTE, f"Requirement '{req.id}' has unknown attribute '{name}'.")


def _check_shall(req: Requirement, path: str, report) -> None:  # type: ignore[no-untyped-def]
    count = len(_SHALL.findall(req.body))
    if count == 0 and req.variant is ReqVariant.REQUIREMENT:
        report(
            IssueType.NO_SHALL_IN_BODY,
            f"Requirement `{req.id}` in document `{path}` does not contain a SHALL statement in its body",
        )
    elif count > 1:
        report(
            IssueType.MANY_SHALL_IN_BODY,
            f"Requirement `{req.id}` in document `{path}` contains multiple SHALL statements in its body",
        )

    rationale = req.attributes.get("RATIONALE")
    if rationale and _SHALL.search(rationale):
        report(
            IssueType.SHALL_IN_RATIONALE,
            f"Requirement `{req.id}` in document `{path}` contains SHALL statements in its rationale",
        )


def _check_parents(req: Requirement, graph: Graph, report) -> None:  # type: ignore[no-untyped-def]
    for parent_id in req.parent_ids:
        parent = graph.requirements.get(parent_id)
        if parent is None:
            report(IssueType.INVALID_PARENT, f"Invalid parent of requirement {req.id}: {parent_id} does not exist.")
            continue
        if parent.is_deleted:
            report(IssueType.INVALID_PARENT, f"Invalid parent of requirement {req.id}: {parent_id} is deleted.")
        if req.variant is ReqVariant.REQUIREMENT:
            problem = validate_parent_link(req, parent)
            if problem:
                report(IssueType.INVALID_PARENT, problem)


def _check_body_references(req: Requirement, graph: Graph, report) -> None:  # type: ignore[no-untyped-def]
    for match in REQ_ID_PATTERN.finditer(req.body):
        ref_id = match.group(0)
        referenced = graph.requirements.get(ref_id)
        if referenced is None:
            report(
                IssueType.INVALID_REQUIREMENT_REFERENCE,
                f"Invalid reference to non existent requirement {ref_id} in body of {req.id}.",
            )
        elif referenced.is_deleted:
            report(
                IssueType.INVALID_REQUIREMENT_REFERENCE,
                f"Invalid reference to deleted requirement {ref_id} in body of {req.id}.",
            )


def _check_flow_links(  # type: ignore[no-untyped-def]
    req: Requirement, document: Document, graph: Graph, report
) -> None:
    raw = req.attributes.get("FLOW")
    if raw is None:
        return
    for entry in raw.split(","):
        tag_id = entry.strip()
        if not tag_id:
            continue
        tag = graph.flow_tags.get(tag_id)
        if tag is None:
            report(IssueType.INVALID_FLOW_ID, f"Unknown data/control flow tag '{tag_id}' in requirement '{req.id}'")
            continue
        parts = tag_id.split("-")
        if len(parts) < 2 or parts[1] != document.req_spec.prefix:
            report(
                IssueType.FLOW_ID_OF_DIFFERENT_ITEM,
                f"Link to existing flow tag '{tag_id}' that belongs to a different item in requirement '{req.id}'",
            )
            continue
        if req.id not in tag.reqs:
            tag.reqs.append(req.id)


__all__ = ["check_requirement", "validate_parent_link"]
