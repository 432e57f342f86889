"""Parser for JSON dumps of introspected docstrings.

The input is either a JSON array of entries or an object with a ``records``
array. Each entry describes one API object::

    {
      "qualname": "numpy.zeros",
      "type": "function",
      "signature": "numpy.zeros(shape, dtype=float)",
      "docstring": "Return a new array...\\n\\nExamples\\n--------\\n>>> np.zeros(3)\\narray([0., 0., 0.])",
      "tags": ["array"]
    }

Doctest blocks in a numpydoc ``Examples`` section become code examples; the
prose right before each block becomes its description.
"""

from __future__ import annotations

import re
from typing import Any

import orjson

from sci_docs_mcp.domain.model import CodeExample, ParseOutcome
from sci_docs_mcp.parsers.base import OutcomeBuilder, as_string_list, first_paragraph, resolve_kind


_ID_KEYS = ("id", "qualname", "name")
_KIND_KEYS = ("kind", "type")
_DOC_KEYS = ("docstring", "doc")

# numpydoc section header: a title line underlined with dashes
_SECTION_HEADER = re.compile(r"^([A-Z][A-Za-z ]*)\n-{3,}[ \t]*$", re.MULTILINE)


class DocstringJsonParser:
    """Turn docstring JSON entries into records."""

    name = "docstring-json"

    def __init__(self, library: str) -> None:
        self.library = library

    def parse(self, raw_source: str) -> ParseOutcome:
        builder = OutcomeBuilder(self.name)
        try:
            payload = orjson.loads(raw_source)
        except orjson.JSONDecodeError as exc:
            builder.warn(f"{self.library}:json", f"invalid JSON: {exc}", raw_source.strip()[:80] or None)
            return builder.build()

        if isinstance(payload, dict) and isinstance(payload.get("records"), list):
            entries = payload["records"]
        elif isinstance(payload, list):
            entries = payload
        else:
            builder.warn(f"{self.library}:json", "expected a JSON array or an object with a 'records' array")
            return builder.build()

        for index, entry in enumerate(entries):
            self._parse_entry(index, entry, builder)

        return builder.build()

    def _parse_entry(self, index: int, entry: Any, builder: OutcomeBuilder) -> None:
        ref = f"{self.library}:json:{index}"
        if not isinstance(entry, dict):
            builder.warn(ref, f"entry must be an object, got {type(entry).__name__}", str(entry)[:80])
            return

        record_id = str(_first(entry, _ID_KEYS) or "").strip()
        if not record_id:
            builder.warn(ref, "entry has no id, qualname or name", _fragment(entry))
            return

        kind_label = _first(entry, _KIND_KEYS)
        kind = resolve_kind(kind_label if kind_label is not None else "function")
        if kind is None:
            builder.warn(ref, f"unknown kind {kind_label!r}", record_id)
            return

        doc = _first(entry, _DOC_KEYS) or ""
        if not isinstance(doc, str):
            builder.warn(ref, "docstring must be a string", record_id)
            return
        doc = doc.replace("\r\n", "\n").strip()

        prose, doctest_examples = split_examples_section(doc)
        examples = [*doctest_examples, *self._declared_examples(ref, record_id, entry.get("examples"), builder)]
        signature = entry.get("signature")

        builder.add(
            source_ref=ref,
            fragment=record_id,
            id=record_id,
            kind=kind,
            signature=str(signature).strip() if signature else None,
            summary=str(entry.get("summary") or first_paragraph(prose)),
            body=doc,
            examples=examples,
            tags=as_string_list(entry.get("tags")),
            aliases=as_string_list(entry.get("aliases")),
        )

    @staticmethod
    def _declared_examples(ref: str, record_id: str, value: Any, builder: OutcomeBuilder) -> list[CodeExample]:
        if value is None:
            return []
        if not isinstance(value, list):
            value = [value]
        examples: list[CodeExample] = []
        for item in value:
            if isinstance(item, str) and item.strip():
                examples.append(CodeExample(code=item.strip("\n")))
            elif isinstance(item, dict) and isinstance(item.get("code"), str) and item["code"].strip():
                examples.append(
                    CodeExample(code=item["code"].strip("\n"), description=str(item.get("description") or ""))
                )
            else:
                builder.warn(ref, "example must be a string or an object with 'code'", record_id)
        return examples


def split_examples_section(doc: str) -> tuple[str, list[CodeExample]]:
    """Split a numpydoc docstring into the prose before ``Examples`` and its doctests."""
    headers = list(_SECTION_HEADER.finditer(doc))
    for position, header in enumerate(headers):
        if header.group(1).strip() != "Examples":
            continue
        end = headers[position + 1].start() if position + 1 < len(headers) else len(doc)
        return doc[: header.start()].rstrip(), extract_doctests(doc[header.end() : end])
    return doc, []


def extract_doctests(text: str) -> list[CodeExample]:
    """Collect ``>>>`` blocks with their output; preceding prose is the description."""
    examples: list[CodeExample] = []
    prose: list[str] = []
    block: list[str] = []
    indent = 0
    paragraph_closed = False

    def close_block() -> None:
        nonlocal block, prose, paragraph_closed
        if block:
            examples.append(CodeExample(code="\n".join(block).rstrip(), description=" ".join(prose)))
            block = []
            prose = []
            paragraph_closed = False

    for line in text.split("\n"):
        stripped = line.strip()
        if not block and stripped.startswith(">>>"):
            indent = len(line) - len(line.lstrip())
            block.append(stripped)
        elif block and stripped:
            # keep indentation of continuation and output lines relative to the prompt
            block.append(line[indent:] if not line[:indent].strip() else stripped)
        elif block:
            close_block()
        elif stripped:
            if paragraph_closed:
                prose = []
                paragraph_closed = False
            prose.append(stripped)
        else:
            paragraph_closed = bool(prose)

    close_block()
    return examples


def _first(entry: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if entry.get(key) is not None:
            return entry[key]
    return None


def _fragment(entry: dict[str, Any]) -> str:
    return orjson.dumps(entry, option=orjson.OPT_SORT_KEYS).decode()[:80]
