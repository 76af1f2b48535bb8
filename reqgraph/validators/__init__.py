"""Checks that turn an assembled graph into typed diagnostics."""

from .code import deduplicate_code_symbols, link_code_symbols
from .coverage import check_coverage
from .flow import check_flow_tags, register_flow_tags
from .requirements import check_requirement, validate_parent_link
from .sequence import check_document_sequence

__all__ = [
    "check_coverage",
    "check_document_sequence",
    "check_flow_tags",
    "check_requirement",
    "deduplicate_code_symbols",
    "link_code_symbols",
    "register_flow_tags",
    "validate_parent_link",
]
