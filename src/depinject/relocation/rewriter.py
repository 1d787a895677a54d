"""Namespace rewriting for module sources and archive paths.

Rules are tried in declaration order; the first one whose pattern covers a
name wins and no later rule is consulted for that name.
"""
from __future__ import annotations

import io
import re
import tokenize
from typing import List, Optional, Sequence, Tuple

from ..models import Relocation

_DOTTED_RE = re.compile(r"^[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*$")
_RESOURCE_RE = re.compile(r"^[A-Za-z_]\w*(?:/[\w.\-]+)+$")
_IMPORT_CALLS = {"import_module", "__import__", "find_spec", "find_loader"}
_STATEMENT_START = {tokenize.NEWLINE, tokenize.NL, tokenize.INDENT, tokenize.DEDENT, tokenize.ENCODING}
_METADATA_SUFFIXES = (".dist-info", ".data", ".egg-info")


class RewriteError(ValueError):
    """A source entry could not be tokenized or rewritten safely."""


class SourceRewriter:
    def __init__(self, relocations: Sequence[Relocation]):
        self.relocations = tuple(relocations)

    def relocate_name(self, name: str) -> Optional[str]:
        """Relocated dotted name, or None if no rule covers it."""
        for rule in self.relocations:
            if rule.matches(name):
                return rule.apply(name)
        return None

    def relocate_path(self, path: str) -> str:
        """Relocate a ``/``-separated archive path whose directories encode a namespace.

        ``six/moves/x.py`` under ``six -> vendor.six`` becomes
        ``vendor/six/moves/x.py``; the file suffix is kept. Packaging metadata
        directories are never renamed.
        """
        is_dir = path.endswith("/")
        parts = [p for p in path.split("/") if p]
        if not parts or parts[0].endswith(_METADATA_SUFFIXES):
            return path
        components = list(parts)
        suffix = ""
        if not is_dir:
            stem, dot, rest = parts[-1].partition(".")
            components[-1] = stem
            suffix = dot + rest
        if not all(c.isidentifier() for c in components):
            return path
        relocated = self.relocate_name(".".join(components))
        if relocated is None:
            return path
        rebuilt = "/".join(relocated.split("."))
        return rebuilt + ("/" if is_dir else suffix)

    def rewrite_source(self, data: bytes) -> bytes:
        """Rewrite import statements and namespace string literals in a module.

        Args:
            data: Source bytes; the declared or detected encoding is kept.

        Returns:
            Rewritten bytes (the same object when nothing matched).

        Raises:
            RewriteError: If the source cannot be tokenized, or an unaliased
                import would lose its binding.
        """
        try:
            tokens = list(tokenize.tokenize(io.BytesIO(data).readline))
        except (tokenize.TokenError, SyntaxError, UnicodeDecodeError) as exc:
            raise RewriteError(f"cannot tokenize source: {exc}") from exc
        encoding = tokens[0].string if tokens and tokens[0].type == tokenize.ENCODING else "utf-8"
        edits = self._import_edits(tokens) + self._string_edits(tokens)
        if not edits:
            return data
        text = data.decode(encoding)
        offsets = _line_offsets(text)
        pieces = []
        cursor = 0
        for start, end, replacement in sorted(edits):
            begin = offsets[start[0] - 1] + start[1]
            if begin < cursor:
                continue
            pieces.append(text[cursor:begin])
            pieces.append(replacement)
            cursor = offsets[end[0] - 1] + end[1]
        pieces.append(text[cursor:])
        return "".join(pieces).encode(encoding)

    def _import_edits(self, tokens: List[tokenize.TokenInfo]) -> List[Tuple]:
        edits: List[Tuple] = []
        significant = [t for t in tokens if t.type not in (tokenize.COMMENT,)]
        previous = None
        i = 0
        while i < len(significant):
            tok = significant[i]
            at_start = previous is None or previous.type in _STATEMENT_START or (
                previous.type == tokenize.OP and previous.string in (";", ":")
            )
            if tok.type == tokenize.NAME and at_start and tok.string == "from":
                i = self._from_statement(significant, i + 1, edits)
            elif tok.type == tokenize.NAME and at_start and tok.string == "import":
                i = self._import_statement(significant, i + 1, edits)
            else:
                i += 1
            previous = significant[i - 1]
        return edits

    def _from_statement(self, tokens, i, edits) -> int:
        if i >= len(tokens) or tokens[i].type != tokenize.NAME:
            return i  # relative import, left alone
        name, start, end, i = _dotted(tokens, i)
        relocated = self.relocate_name(name)
        if relocated is not None:
            edits.append((start, end, relocated))
        return i

    def _import_statement(self, tokens, i, edits) -> int:
        while i < len(tokens) and tokens[i].type == tokenize.NAME:
            name, start, end, i = _dotted(tokens, i)
            aliased = i < len(tokens) and tokens[i].type == tokenize.NAME and tokens[i].string == "as"
            relocated = self.relocate_name(name)
            if relocated is not None:
                if aliased:
                    edits.append((start, end, relocated))
                else:
                    edits.append((start, end, self._rebind(name, relocated)))
            if aliased:
                i += 2
            if i < len(tokens) and tokens[i].type == tokenize.OP and tokens[i].string == ",":
                i += 1
                continue
            break
        return i

    def _rebind(self, name: str, relocated: str) -> str:
        # "import a.b" binds "a"; keep that name bound to the relocated top package.
        top = name.split(".", 1)[0]
        relocated_top = self.relocate_name(top)
        if relocated_top is None:
            raise RewriteError(
                f"unaliased 'import {name}' binds '{top}', which no rule relocates"
            )
        if relocated == relocated_top:
            return f"{relocated} as {top}"
        return f"{relocated} as {top}, {relocated_top} as {top}"

    def _string_edits(self, tokens: List[tokenize.TokenInfo]) -> List[Tuple]:
        edits: List[Tuple] = []
        significant = [t for t in tokens if t.type not in (tokenize.NL, tokenize.COMMENT)]
        for i, tok in enumerate(significant):
            if tok.type != tokenize.STRING:
                continue
            prefix_len = len(tok.string) - len(tok.string.lstrip("rRuUbBfF"))
            prefix = tok.string[:prefix_len].lower()
            if "b" in prefix or "f" in prefix:
                continue
            body = tok.string[prefix_len:]
            quote = body[:3] if body[:3] in ('"""', "'''") else body[:1]
            content = body[len(quote):-len(quote)]
            if _DOTTED_RE.match(content) and ("." in content or _import_argument(significant, i)):
                relocated = self.relocate_name(content)
            elif _RESOURCE_RE.match(content):
                candidate = self.relocate_path(content)
                relocated = candidate if candidate != content else None
            else:
                relocated = None
            if relocated is not None:
                edits.append((tok.start, tok.end, f"{tok.string[:prefix_len]}{quote}{relocated}{quote}"))
        return edits


def _import_argument(tokens, i) -> bool:
    """True if ``tokens[i]`` is the first argument of an import call."""
    return (
        i >= 2
        and tokens[i - 1].type == tokenize.OP
        and tokens[i - 1].string == "("
        and tokens[i - 2].type == tokenize.NAME
        and tokens[i - 2].string in _IMPORT_CALLS
    )


def _dotted(tokens, i):
    """Read ``NAME ('.' NAME)*`` starting at ``i``."""
    start = tokens[i].start
    end = tokens[i].end
    parts = [tokens[i].string]
    i += 1
    while (
        i + 1 < len(tokens)
        and tokens[i].type == tokenize.OP
        and tokens[i].string == "."
        and tokens[i + 1].type == tokenize.NAME
    ):
        parts.append(tokens[i + 1].string)
        end = tokens[i + 1].end
        i += 2
    return ".".join(parts), start, end, i


def _line_offsets(text: str) -> List[int]:
    offsets = [0]
    for line in text.split("\n"):
        offsets.append(offsets[-1] + len(line) + 1)
    return offsets
