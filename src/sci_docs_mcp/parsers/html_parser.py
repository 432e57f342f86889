"""Sphinx HTML API page parser.

Sphinx renders every documented object as a description list::

    <dl class="py function">
      <dt class="sig sig-object py" id="numpy.zeros">numpy.zeros(shape, dtype=float)</dt>
      <dd><p>Return a new array of given shape and type, filled with zeros.</p>
          <div class="highlight"><pre>&gt;&gt;&gt; np.zeros(3)</pre></div></dd>
    </dl>

Nested descriptions (methods inside a class) become records of their own and
are excluded from the parent's body and examples.
"""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, Tag

from sci_docs_mcp.domain.model import CodeExample, ParseOutcome
from sci_docs_mcp.parsers.base import OutcomeBuilder, resolve_kind


logger = logging.getLogger(__name__)

_SKIPPED_OBJTYPES = frozenset({"attribute", "data", "property", "method-attribute"})


class SphinxHtmlParser:
    """Extract API records from Sphinx-generated HTML."""

    name = "html"

    def __init__(self, library: str) -> None:
        self.library = library

    def parse(self, raw_source: str) -> ParseOutcome:
        builder = OutcomeBuilder(self.name)
        soup = BeautifulSoup(raw_source, "html.parser")

        for link in soup.find_all("a", class_="headerlink"):
            link.decompose()

        entries = [dl for dl in soup.find_all("dl") if "py" in (dl.get("class") or [])]
        if not entries and raw_source.strip():
            builder.warn(f"{self.library}:html", "no Sphinx API entries found", raw_source.strip()[:80])

        for position, dl in enumerate(entries, start=1):
            self._parse_entry(dl, position, builder)

        return builder.build()

    def _parse_entry(self, dl: Tag, position: int, builder: OutcomeBuilder) -> None:
        classes = [css for css in (dl.get("class") or []) if css != "py"]
        objtype = classes[0] if classes else ""
        dt = dl.find("dt", recursive=False)
        dd = dl.find("dd", recursive=False)
        signature = " ".join(dt.get_text().split()) if dt is not None else ""
        record_id = str(dt.get("id") or "").strip() if dt is not None else ""
        ref = f"{self.library}:html:{record_id or f'entry-{position}'}"

        if objtype in _SKIPPED_OBJTYPES:
            logger.debug("Skipping %s entry %s", objtype, record_id or position)
            return

        kind = resolve_kind(objtype)
        if kind is None:
            builder.warn(ref, f"unsupported object type {objtype!r}", signature or None)
            return
        if dt is None or not record_id:
            builder.warn(ref, "API entry has no anchor id", signature or None)
            return

        paragraphs = self._own_paragraphs(dl, dd) if dd is not None else []
        builder.add(
            source_ref=ref,
            fragment=signature,
            id=record_id,
            kind=kind,
            signature=signature or None,
            summary=paragraphs[0] if paragraphs else "",
            body="\n\n".join(paragraphs),
            examples=self._own_examples(dl, dd) if dd is not None else [],
            tags=[objtype],
        )

    @staticmethod
    def _owned_by(node: Tag, dl: Tag) -> bool:
        return node.find_parent("dl") is dl

    def _own_paragraphs(self, dl: Tag, dd: Tag) -> list[str]:
        paragraphs: list[str] = []
        for paragraph in dd.find_all("p"):
            if not self._owned_by(paragraph, dl):
                continue
            text = " ".join(paragraph.get_text().split())
            if text:
                paragraphs.append(text)
        return paragraphs

    def _own_examples(self, dl: Tag, dd: Tag) -> list[CodeExample]:
        examples: list[CodeExample] = []
        for pre in dd.find_all("pre"):
            if not self._owned_by(pre, dl):
                continue
            code = pre.get_text().strip("\n")
            if not code.strip():
                continue
            examples.append(CodeExample(code=code, description=self._example_description(pre)))
        return examples

    @staticmethod
    def _example_description(pre: Tag) -> str:
        anchor: Tag = pre
        for parent in pre.parents:
            css = parent.get("class") or []
            if parent.name == "div" and any(name.startswith("highlight") for name in css):
                anchor = parent
                continue
            break
        previous = anchor.find_previous_sibling(True)
        if previous is not None and previous.name == "p":
            return " ".join(previous.get_text().split())
        return ""
