"""Markdown documentation parser.

Expected layout: one ``## `` heading per documented entity, optionally
preceded by document front matter that names the module::

    ---
    module: numpy
    ---
    # NumPy array creation

    Routines that build arrays.

    ## numpy.zeros
    ---
    kind: function
    signature: numpy.zeros(shape, dtype=float)
    tags: [array, creation]
    aliases: [np.zeros]
    ---
    Return a new array of given shape and type, filled with zeros.

    Build a 2x2 array:

    ```python
    np.zeros((2, 2))
    ```

Headings inside code fences are ignored. The paragraph right before a fence
becomes that example's description.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any

from sci_docs_mcp.domain.model import CodeExample, ParseOutcome, RecordKind
from sci_docs_mcp.parsers.base import OutcomeBuilder, as_string_list, first_paragraph, resolve_kind
from sci_docs_mcp.utils.front_matter import FrontMatterError, parse_front_matter


_HEADING = re.compile(r"^##[ \t]+(.+?)[ \t#]*$")
_FENCE = re.compile(r"^[ \t]*(`{3,}|~{3,})")
_TITLE = re.compile(r"^#{1,6}[ \t]+")
_SLUG_PARTS = re.compile(r"[a-z0-9]+")


@dataclass
class _Section:
    heading: str
    line: int
    lines: list[str] = field(default_factory=list)


@dataclass
class _SectionContent:
    summary: str
    examples: list[CodeExample]
    problems: list[str]


class MarkdownParser:
    """Parse ``## ``-sectioned markdown into records."""

    name = "markdown"

    def __init__(self, library: str) -> None:
        self.library = library

    def parse(self, raw_source: str) -> ParseOutcome:
        builder = OutcomeBuilder(self.name)
        text = raw_source.replace("\r\n", "\n")

        defaults: dict[str, Any] = {}
        first_line = 1
        try:
            defaults, remainder = parse_front_matter(text)
        except FrontMatterError as exc:
            builder.warn(self._ref(1), str(exc))
            remainder = text
        else:
            first_line += text[: len(text) - len(remainder)].count("\n")

        preamble, sections = self._split_sections(remainder, first_line)

        for section in sections:
            self._parse_section(section, defaults, builder)

        module_name = str(defaults.get("module") or "").strip()
        if module_name:
            self._add_module_record(module_name, preamble, first_line, builder)

        if not sections and not module_name and text.strip():
            builder.warn(self._ref(first_line), "no '## ' sections found", text.strip()[:80])

        return builder.build()

    def _ref(self, line: int) -> str:
        return f"{self.library}:markdown:L{line}"

    @staticmethod
    def _split_sections(text: str, first_line: int) -> tuple[list[str], list[_Section]]:
        preamble: list[str] = []
        sections: list[_Section] = []
        current: _Section | None = None
        fence: str | None = None

        for lineno, line in enumerate(text.split("\n"), start=first_line):
            fence_match = _FENCE.match(line)
            if fence_match:
                marker = fence_match.group(1)
                if fence is None:
                    fence = marker
                elif marker.startswith(fence) and line.strip().strip(fence[0]) == "":
                    fence = None
            elif fence is None:
                heading = _HEADING.match(line)
                if heading:
                    current = _Section(heading=heading.group(1), line=lineno)
                    sections.append(current)
                    continue
            (current.lines if current is not None else preamble).append(line)

        return preamble, sections

    def _parse_section(self, section: _Section, defaults: dict[str, Any], builder: OutcomeBuilder) -> None:
        ref = self._ref(section.line)
        heading = section.heading.strip().strip("`").strip()

        try:
            meta, content = parse_front_matter("\n".join(section.lines))
        except FrontMatterError as exc:
            builder.warn(ref, str(exc), heading)
            return

        kind_label = meta.get("kind", defaults.get("kind"))
        if kind_label is None:
            kind = RecordKind.GUIDE if any(char.isspace() for char in heading) else RecordKind.FUNCTION
        else:
            resolved = resolve_kind(kind_label)
            if resolved is None:
                builder.warn(ref, f"unknown kind {kind_label!r}", heading)
                return
            kind = resolved

        record_id = str(meta.get("id") or "").strip() or self._default_id(heading, kind, defaults)
        if not record_id:
            builder.warn(ref, "heading is not an identifier and no id was declared", heading)
            return

        parsed = self._scan_content(content)
        for problem in parsed.problems:
            builder.warn(ref, problem, heading)

        signature = meta.get("signature")
        builder.add(
            source_ref=ref,
            fragment=heading,
            id=record_id,
            kind=kind,
            signature=str(signature).strip() if signature else None,
            summary=str(meta.get("summary") or parsed.summary),
            body=content.strip(),
            examples=parsed.examples,
            tags=as_string_list(meta.get("tags")),
            aliases=as_string_list(meta.get("aliases")),
        )

    def _default_id(self, heading: str, kind: RecordKind, defaults: dict[str, Any]) -> str | None:
        if not heading:
            return None
        if not any(char.isspace() for char in heading):
            return heading
        if kind is not RecordKind.GUIDE:
            return None
        slug = "-".join(_SLUG_PARTS.findall(heading.lower()))
        if not slug:
            return None
        prefix = str(defaults.get("module") or self.library).strip()
        return f"{prefix}.{slug}"

    @staticmethod
    def _scan_content(content: str) -> _SectionContent:
        paragraphs: list[str] = []
        examples: list[CodeExample] = []
        problems: list[str] = []

        paragraph: list[str] = []
        last_paragraph = ""
        fence: str | None = None
        description = ""
        code: list[str] = []

        def close_paragraph() -> None:
            nonlocal paragraph, last_paragraph
            if paragraph:
                last_paragraph = " ".join(paragraph)
                paragraphs.append(last_paragraph)
                paragraph = []

        for line in content.split("\n"):
            if fence is not None:
                stripped = line.strip()
                if stripped.startswith(fence) and stripped.strip(fence[0]) == "":
                    examples.append(CodeExample(code="\n".join(code).rstrip(), description=description))
                    fence = None
                    code = []
                    last_paragraph = ""
                else:
                    code.append(line)
                continue

            fence_match = _FENCE.match(line)
            if fence_match:
                close_paragraph()
                description = last_paragraph
                fence = fence_match.group(1)
            elif not line.strip() or _TITLE.match(line):
                close_paragraph()
            else:
                paragraph.append(line.strip())

        close_paragraph()
        if fence is not None:
            problems.append("unterminated code fence; example dropped")

        return _SectionContent(
            summary=paragraphs[0] if paragraphs else "",
            examples=examples,
            problems=problems,
        )

    def _add_module_record(
        self,
        module_name: str,
        preamble: list[str],
        first_line: int,
        builder: OutcomeBuilder,
    ) -> None:
        body_lines = [line for line in preamble if not _TITLE.match(line)]
        body = "\n".join(body_lines).strip()
        if builder.has_record(module_name):
            return
        builder.add(
            source_ref=self._ref(first_line),
            fragment=module_name,
            id=module_name,
            kind=RecordKind.MODULE,
            summary=first_paragraph(body),
            body=body,
        )
