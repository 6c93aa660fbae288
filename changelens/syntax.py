"""Best-effort Tree-sitter parsing of diff fragments.

Diff text is rarely a complete program, so every parse yields a
``ParseOutcome`` instead of raising: either a usable syntax tree, or a
*degraded* outcome explaining why no tree is available.  Callers decide
what to do with a degraded outcome.

The traversal helpers only rely on the ``type`` / ``children`` shape of a
node, so they work for any Tree-sitter grammar.
"""

from __future__ import annotations

import importlib
import logging
import threading
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "tsx",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".py": "python",
}

# language -> (module, function returning the Language capsule)
_GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "tsx": ("tree_sitter_typescript", "language_tsx"),
    "javascript": ("tree_sitter_javascript", "language"),
    "python": ("tree_sitter_python", "language"),
}

DECLARATION_TYPES = frozenset({
    "function_declaration",
    "generator_function_declaration",
    "method_definition",
    "function_signature",
    "method_signature",
    "abstract_method_signature",
    "function_definition",
})


@dataclass(frozen=True)
class ParseOutcome:
    tree: Any = None
    degraded: bool = False
    reason: str = ""

    @classmethod
    def failed(cls, reason: str) -> "ParseOutcome":
        return cls(tree=None, degraded=True, reason=reason)


def language_for_path(file_path: str) -> Optional[str]:
    return LANGUAGE_MAP.get(PurePosixPath(file_path.replace("\\", "/")).suffix.lower())


class SyntaxParser:
    """Lazily-initialised Tree-sitter parsers, one per language.

    Tree-sitter ``Parser`` objects are not safe to share between threads,
    so each thread gets its own parser; ``Language`` objects are shared.
    """

    def __init__(self, max_bytes: int = 1_000_000) -> None:
        self.max_bytes = max_bytes
        self._languages: Dict[str, Any] = {}
        self._missing: set = set()
        self._lock = threading.Lock()
        self._local = threading.local()

    def _load_language(self, language: str) -> Optional[Any]:
        with self._lock:
            if language in self._languages:
                return self._languages[language]
            if language in self._missing:
                return None

            entry = _GRAMMAR_MODULES.get(language)
            if entry is None:
                self._missing.add(language)
                return None

            mod_name, attr = entry
            try:
                from tree_sitter import Language

                mod = importlib.import_module(mod_name)
                ts_lang = Language(getattr(mod, attr)())
            except ImportError:
                logger.warning(
                    "Grammar package '%s' not installed for language '%s'. "
                    "Install with: pip install %s",
                    mod_name, language, mod_name.replace("_", "-"),
                )
                self._missing.add(language)
                return None
            except Exception as exc:
                logger.warning("Could not load tree-sitter grammar for %s: %s", language, exc)
                self._missing.add(language)
                return None

            self._languages[language] = ts_lang
            logger.debug("Loaded tree-sitter grammar for %s", language)
            return ts_lang

    def _parser_for(self, language: str) -> Optional[Any]:
        parsers = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = self._local.parsers = {}
        if language in parsers:
            return parsers[language]

        ts_lang = self._load_language(language)
        if ts_lang is None:
            return None

        from tree_sitter import Parser as TSParser

        parser = TSParser(ts_lang)
        parsers[language] = parser
        return parser

    def parse(self, text: str, language: Optional[str]) -> ParseOutcome:
        if not language:
            return ParseOutcome.failed("no grammar for file type")

        source = text.encode("utf-8", errors="replace")
        if len(source) > self.max_bytes:
            return ParseOutcome.failed(
                f"{len(source)} bytes exceeds parse limit of {self.max_bytes}"
            )

        parser = self._parser_for(language)
        if parser is None:
            return ParseOutcome.failed(f"{language} grammar unavailable")

        try:
            tree = parser.parse(source)
        except Exception as exc:
            return ParseOutcome.failed(f"parser error: {exc}")

        root = tree.root_node
        if root.has_error:
            return ParseOutcome.failed("text is not valid source")
        return ParseOutcome(tree=root)


# ===================================================================
# Generic traversal
# ===================================================================

def walk(root: Any) -> Iterator[Any]:
    """Yield *root* and every descendant in pre-order.

    Iterative, so deeply nested input cannot exhaust the recursion limit.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        children = getattr(node, "children", None) or []
        stack.extend(reversed(children))


def node_text(node: Any) -> str:
    text = getattr(node, "text", None)
    if text is None:
        return ""
    if isinstance(text, bytes):
        return text.decode("utf-8", errors="replace")
    return str(text)


def declaration_name(node: Any) -> Optional[str]:
    """Name of a function or method declaration node, else None."""
    if node.type not in DECLARATION_TYPES:
        return None
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return None
    return node_text(name_node) or None


def decorator_name(node: Any) -> Optional[str]:
    """Identifier applied by a decorator node (``@Name``, ``@Name()``, ``@a.Name``)."""
    if node.type != "decorator":
        return None
    for child in node.children:
        if child.type == "@":
            continue
        return _callee_name(child)
    return None


def _callee_name(expr: Any) -> Optional[str]:
    if expr.type in ("identifier", "property_identifier", "type_identifier"):
        return node_text(expr) or None
    if expr.type in ("call_expression", "call"):
        inner = expr.child_by_field_name("function")
        return _callee_name(inner) if inner is not None else None
    if expr.type == "member_expression":
        prop = expr.child_by_field_name("property")
        return node_text(prop) if prop is not None else None
    if expr.type == "attribute":
        attr = expr.child_by_field_name("attribute")
        return node_text(attr) if attr is not None else None
    return None
