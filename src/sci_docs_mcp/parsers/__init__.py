"""Parser adapters turning raw documentation sources into records."""

from sci_docs_mcp.parsers.base import ParserAdapter
from sci_docs_mcp.parsers.docstring_parser import DocstringJsonParser
from sci_docs_mcp.parsers.html_parser import SphinxHtmlParser
from sci_docs_mcp.parsers.markdown_parser import MarkdownParser
from sci_docs_mcp.parsers.registry import BUILTIN_PARSERS, ParserRegistry, create_parser


__all__ = [
    "BUILTIN_PARSERS",
    "DocstringJsonParser",
    "MarkdownParser",
    "ParserAdapter",
    "ParserRegistry",
    "SphinxHtmlParser",
    "create_parser",
]
