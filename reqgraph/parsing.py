"""Parse requirements and flow tags out of markdown certification documents.

Two requirement styles are recognised and may be mixed in one document:

* ATX headings whose text starts with a requirement ID. The heading text after
  the ID is the title, the following lines are the body, and an optional
  ``Attributes:`` sub-heading introduces ``- Key: Value`` lines.
* Pipe tables whose first column header is ``ID``. The ``Title`` and ``Body``
  columns fill those fields and every other column becomes an attribute.

Control and data flow tags are read from pipe tables with the headers
``| Caller | Flow Tag | Callee | Description |`` and
``| Caller | Flow Tag | Callee | Direction | Description |``.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from .config import Document
from .models import Attributes, FlowTag, ReqVariant, Requirement

REQ_ID_PATTERN = re.compile(r"(REQ|ASM)-(\w+)-(\w+)-(\d+)", re.ASCII)
_BAD_REQ_ID = re.compile(r"(REQ|ASM)-((\d+)|((\w+)-(\d+)))", re.ASCII | re.IGNORECASE)

_ATX_HEADING = re.compile(r"^ {0,3}(#{1,6})( +(.*)( #* *)?)?$")
_ATTRIBUTES_HEADING = re.compile(r"^ {0,3}#{1,6} +Attributes:[ \t]*$", re.MULTILINE)
_ATTRIBUTE_KEY = re.compile(r"^- (.+?):", re.MULTILINE)

_REQ_TABLE_HEADER = re.compile(r"^\| *ID *\|(?:[^|]*\|)+$")
_TABLE_DELIMITER = re.compile(r"^\|(?: *-+ *\|)+$")
_CF_TABLE_HEADER = re.compile(r"^\| *Caller *\| *Flow Tag *\| *Callee *\| *Description *\|$")
_DF_TABLE_HEADER = re.compile(
    r"^\| *Caller *\| *Flow Tag *\| *Callee *\| *Direction *\| *Description *\|$"
)
_CF_ID = re.compile(r"^CF-(\w+)-(\d+)(-DELETED)?$", re.ASCII)
_DF_ID = re.compile(r"^DF-(\w+)-(\d+)(-DELETED)?$", re.ASCII)

_DELETED_SUFFIX = "-DELETED"


class ParseError(RuntimeError):
    """Raised when a document violates the requirement grammar."""


class _Fragment(Enum):
    NONE = "none"
    HEADING = "heading"
    TABLE = "table"
    DATA_FLOW = "data flow"
    CONTROL_FLOW = "control flow"


@dataclass
class ParsedDocument:
    requirements: List[Requirement] = field(default_factory=list)
    flow_tags: List[FlowTag] = field(default_factory=list)


class DocumentParser:
    """Line-oriented parser for one certification document."""

    def __init__(self, document: Optional[Document] = None, repo_name: str = "") -> None:
        self._document = document
        self._repo_name = repo_name

    def parse(self, text: str) -> ParsedDocument:
        parsed = ParsedDocument()
        mode = _Fragment.NONE
        buffer: List[str] = []
        start_line = 0
        req_level = 0
        last_heading_level = 0
        last_heading_line = 0

        for lno, line in enumerate(text.splitlines(), start=1):
            if mode in (_Fragment.TABLE, _Fragment.DATA_FLOW, _Fragment.CONTROL_FLOW) and not line.startswith("|"):
                self._close(mode, buffer, start_line, parsed)
                mode = _Fragment.NONE

            heading = _ATX_HEADING.match(line)
            if heading:
                level = len(heading.group(1))
                title = heading.group(3) or ""
                id_count = len(REQ_ID_PATTERN.findall(title))
                if id_count > 1:
                    raise ParseError(f"malformed requirement title: too many IDs on line {lno}: {line!r}")
                has_id = id_count == 1

                if mode is _Fragment.HEADING:
                    if has_id and level != req_level:
                        raise ParseError(
                            f"requirement heading on line {lno} must be at same level as requirement "
                            f"heading on line {start_line} ({level} != {req_level}): {line!r}"
                        )
                    if not has_id and level < req_level and _ATTRIBUTES_HEADING.match(line):
                        raise ParseError(
                            f"attributes heading on line {lno} must be nested below requirement "
                            f"heading on line {start_line} ({level} < {req_level}): {line!r}"
                        )
                    if not has_id and level == req_level:
                        raise ParseError(
                            f"non-requirement heading on line {lno} at same level as requirement "
                            f"heading on line {start_line} ({level}): {line!r}"
                        )
                elif has_id and level == last_heading_level:
                    raise ParseError(
                        f"requirement heading on line {lno} at same level as previous heading "
                        f"on line {last_heading_line} ({level}): {line!r}"
                    )

                if mode is not _Fragment.NONE and (has_id or level < req_level):
                    self._close(mode, buffer, start_line, parsed)
                    mode = _Fragment.NONE

                if has_id:
                    mode = _Fragment.HEADING
                    req_level = level
                    start_line = lno
                    buffer = []
                    line = title
                last_heading_level = level
                last_heading_line = lno
            else:
                table_mode = _table_mode(line)
                if table_mode is not None:
                    if mode is not _Fragment.NONE:
                        self._close(mode, buffer, start_line, parsed)
                    mode = table_mode
                    start_line = lno
                    buffer = []

            if mode is not _Fragment.NONE:
                buffer.append(line)

        if mode is not _Fragment.NONE:
            self._close(mode, buffer, start_line, parsed)

        for req in parsed.requirements:
            req.document = self._document
            req.repo_name = self._repo_name
        for tag in parsed.flow_tags:
            tag.document = self._document
            tag.repo_name = self._repo_name
        return parsed

    def _close(self, mode: _Fragment, buffer: List[str], start_line: int, parsed: ParsedDocument) -> None:
        if mode is _Fragment.HEADING:
            parsed.requirements.append(_parse_heading_requirement("\n".join(buffer), start_line))
        elif mode is _Fragment.TABLE:
            parsed.requirements.extend(_parse_requirement_table(buffer, start_line))
        elif mode in (_Fragment.DATA_FLOW, _Fragment.CONTROL_FLOW):
            parsed.flow_tags.extend(_parse_flow_table(buffer, start_line, mode))


def parse_document(text: str, *, document: Optional[Document] = None, repo_name: str = "") -> ParsedDocument:
    """Parse document text into requirements and flow tags, in source order."""
    return DocumentParser(document, repo_name).parse(text)


def parse_document_file(root: Path, document: Document, repo_name: str) -> ParsedDocument:
    """Read ``document.path`` below ``root`` and parse it."""
    try:
        text = (root / document.path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(f"document is not valid UTF-8: {exc}") from exc
    return parse_document(text, document=document, repo_name=repo_name)


def extract_id_parts(text: str) -> Tuple[str, ReqVariant, int]:
    """Return the ID, variant and number of the requirement ID that starts ``text``."""
    head = text[:40]
    match = REQ_ID_PATTERN.search(text)
    if match is None:
        if _BAD_REQ_ID.search(text):
            raise ParseError(
                f"malformed requirement: found only malformed ID: {head!r} "
                f"(doesn't match {REQ_ID_PATTERN.pattern!r})"
            )
        raise ParseError(f"malformed requirement: missing ID in first 40 characters: {head!r}")
    if match.start() > 0:
        raise ParseError(f"malformed requirement: ID must be at the start of the title: {head!r}")
    return match.group(0), ReqVariant(match.group(1)), int(match.group(4))


def split_table_line(line: str) -> List[str]:
    """Split a pipe table row into stripped cells; escaped pipes are not supported."""
    if not line.startswith("|"):
        return []
    parts = line.split("|")
    if parts and parts[0] == "":
        parts = parts[1:]
    if parts and parts[-1] == "":
        parts = parts[:-1]
    return [part.strip() for part in parts]


def _table_mode(line: str) -> Optional[_Fragment]:
    if _REQ_TABLE_HEADER.match(line):
        return _Fragment.TABLE
    if _DF_TABLE_HEADER.match(line):
        return _Fragment.DATA_FLOW
    if _CF_TABLE_HEADER.match(line):
        return _Fragment.CONTROL_FLOW
    return None


def _parse_heading_requirement(text: str, start_line: int) -> Requirement:
    req_id, variant, number = extract_id_parts(text)
    req = Requirement(id=req_id, variant=variant, id_number=number, position=start_line)

    remainder = _trim_left_punct_or_space(text[len(req_id):]).strip()
    title, _, body_and_attributes = remainder.partition("\n")
    req.title = title.strip()

    if "\n" not in remainder:
        if req.is_deleted:
            return req
        raise ParseError(f"Requirement must not be empty: {req_id} (line {start_line})")

    attributes_heading = _ATTRIBUTES_HEADING.search(body_and_attributes)
    body = body_and_attributes
    if attributes_heading is not None:
        body = body_and_attributes[: attributes_heading.start()]
        req.attributes = _parse_attribute_section(
            req_id, body_and_attributes[attributes_heading.end():], start_line
        )

    req.body = body.strip()
    if not req.body and not req.is_deleted:
        raise ParseError(f"Requirement body must not be empty: {req_id} (line {start_line})")

    req.parent_ids = _parse_parents(req)
    return req


def _parse_attribute_section(req_id: str, text: str, start_line: int) -> Attributes:
    keys = list(_ATTRIBUTE_KEY.finditer(text))
    if not keys:
        raise ParseError(
            f"Requirement {req_id} contains an attribute section but no attributes (line {start_line})"
        )
    attributes = Attributes()
    for index, match in enumerate(keys):
        key = _normalise_key(match.group(1))
        end = keys[index + 1].start() if index + 1 < len(keys) else len(text)
        if key in attributes:
            raise ParseError(
                f"requirement {req_id} contains duplicate attribute: {key!r} (line {start_line})"
            )
        attributes[key] = text[match.end():end].strip()
    return attributes


def _parse_requirement_table(rows: List[str], start_line: int) -> List[Requirement]:
    headers = [_normalise_key(cell) for cell in split_table_line(rows[0])]
    requirements: List[Requirement] = []
    for index, row in enumerate(rows[1:], start=1):
        if _TABLE_DELIMITER.match(row):
            continue
        values = split_table_line(row)
        if not values:
            break
        if len(values) < len(headers):
            raise ParseError(
                f"too few cells on row {index + 1} of requirement table (line {start_line + index}): {row!r}"
            )

        req: Optional[Requirement] = None
        title = body = ""
        attributes = Attributes()
        for header, value in zip(headers, values):
            if header == "ID":
                try:
                    req_id, variant, number = extract_id_parts(value)
                except ParseError as exc:
                    raise ParseError(f"{exc} (line {start_line + index})") from exc
                req = Requirement(id=req_id, variant=variant, id_number=number)
            elif header == "TITLE":
                title = value
            elif header == "BODY":
                body = value
            elif value:
                attributes[header] = value

        if req is None:
            raise ParseError(f"requirement table row {index + 1} has no ID (line {start_line + index})")
        req.title = title
        req.body = body
        req.attributes = attributes
        req.position = start_line + index
        req.parent_ids = _parse_parents(req)
        requirements.append(req)
    return requirements


def _parse_flow_table(rows: List[str], start_line: int, mode: _Fragment) -> List[FlowTag]:
    tag_pattern = _DF_ID if mode is _Fragment.DATA_FLOW else _CF_ID
    headers = [cell.upper() for cell in split_table_line(rows[0])]
    tags: List[FlowTag] = []
    for index, row in enumerate(rows[1:], start=1):
        if _TABLE_DELIMITER.match(row):
            continue
        values = split_table_line(row)
        if not values:
            break
        if len(values) < len(headers):
            raise ParseError(f"too few cells on row {index + 1} of {mode.value} table (line {start_line + index})")

        tag = FlowTag(id="", position=start_line + index)
        for header, value in zip(headers, values):
            if header == "FLOW TAG":
                if not tag_pattern.match(value):
                    raise ParseError(
                        f"Invalid tag '{value}' on row {index + 1} of {mode.value} table (line {start_line + index})"
                    )
                if value.endswith(_DELETED_SUFFIX):
                    tag.id = value[: -len(_DELETED_SUFFIX)]
                    tag.deleted = True
                else:
                    tag.id = value
            elif header == "CALLER":
                tag.caller = value
            elif header == "CALLEE":
                tag.callee = value
            elif header == "DIRECTION":
                tag.direction = value
            elif header == "DESCRIPTION":
                tag.description = value
        tags.append(tag)
    return tags


def _parse_parents(req: Requirement) -> List[str]:
    raw = req.attributes.get("PARENTS", "")
    matches = list(REQ_ID_PATTERN.finditer(raw))
    if not matches:
        if raw.strip():
            raise ParseError(
                f"requirement {req.id} parents: unparseable as list of requirement ids: {raw!r} "
                f"(line {req.position})"
            )
        return []

    separators = [raw[: matches[0].start()]]
    separators.extend(raw[prev.end(): cur.start()] for prev, cur in zip(matches, matches[1:]))
    separators.append(raw[matches[-1].end():])
    for separator in separators:
        if _trim_punct_or_space(separator):
            raise ParseError(
                f"requirement {req.id} parents: unparseable as list of requirement ids: "
                f"{separator!r} in {raw!r} (line {req.position})"
            )
    return [match.group(0) for match in matches]


def _normalise_key(key: str) -> str:
    key = key.strip().upper()
    return "PARENTS" if key == "PARENT" else key


def _is_punct_or_space(char: str) -> bool:
    return char.isspace() or unicodedata.category(char).startswith("P")


def _trim_left_punct_or_space(text: str) -> str:
    index = 0
    while index < len(text) and _is_punct_or_space(text[index]):
        index += 1
    return text[index:]


def _trim_punct_or_space(text: str) -> str:
    trimmed = _trim_left_punct_or_space(text)
    end = len(trimmed)
    while end > 0 and _is_punct_or_space(trimmed[end - 1]):
        end -= 1
    return trimmed[:end]


__all__ = [
    "DocumentParser",
    "ParseError",
    "ParsedDocument",
    "REQ_ID_PATTERN",
    "extract_id_parts",
    "parse_document",
    "parse_document_file",
    "split_table_line",
]
