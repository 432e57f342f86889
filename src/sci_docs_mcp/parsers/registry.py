"""Parser registry mapping each library to its parser adapter."""

from collections.abc import Callable

from sci_docs_mcp.errors import NotFound
from sci_docs_mcp.parsers.base import ParserAdapter
from sci_docs_mcp.parsers.docstring_parser import DocstringJsonParser
from sci_docs_mcp.parsers.html_parser import SphinxHtmlParser
from sci_docs_mcp.parsers.markdown_parser import MarkdownParser


ParserFactory = Callable[[str], ParserAdapter]

BUILTIN_PARSERS: dict[str, ParserFactory] = {
    MarkdownParser.name: MarkdownParser,
    SphinxHtmlParser.name: SphinxHtmlParser,
    DocstringJsonParser.name: DocstringJsonParser,
}


def create_parser(name: str, library: str) -> ParserAdapter:
    """Instantiate a built-in parser by format name.

    Args:
        name: One of ``markdown``, ``html`` or ``docstring-json``
        library: Library codename used in source references

    Raises:
        NotFound: ``name`` is not a built-in format
    """
    factory = BUILTIN_PARSERS.get(name)
    if factory is None:
        known = ", ".join(sorted(BUILTIN_PARSERS))
        raise NotFound(f"Unknown parser '{name}' (known: {known})", detail=name)
    return factory(library)


class ParserRegistry:
    """Central registry of per-library parser adapters.

    Usage:
        registry = ParserRegistry()
        registry.register("numpy", create_parser("markdown", "numpy"))
        parser = registry.get("numpy")
    """

    def __init__(self) -> None:
        self._parsers: dict[str, ParserAdapter] = {}

    def register(self, library: str, parser: ParserAdapter) -> None:
        """Register (or replace) the parser for a library."""
        if not isinstance(parser, ParserAdapter):
            raise TypeError(f"{type(parser).__name__} does not implement the parser adapter interface")
        self._parsers[library] = parser

    def get(self, library: str) -> ParserAdapter:
        """Get the parser for a library.

        Raises:
            NotFound: no parser is registered for ``library``
        """
        parser = self._parsers.get(library)
        if parser is None:
            raise NotFound(f"No parser registered for library '{library}'", detail=library)
        return parser

    def library_ids(self) -> list[str]:
        """List registered library codenames in registration order."""
        return list(self._parsers.keys())

    def __len__(self) -> int:
        return len(self._parsers)

    def __contains__(self, library: str) -> bool:
        return library in self._parsers
