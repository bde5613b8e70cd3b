"""
stencilforge.parser - Directive Parser
======================================

Turns template text into a tree of nodes that the evaluator walks in
document order. Parsing never fails: a tag that cannot be understood becomes
a ``Malformed`` node that renders verbatim and reports why.

Directive Grammar
-----------------
::

    {{path.to.value}}                      Variable
    {{helperName arg1 "two" 3 true}}       Helper
    {{> partialName}}                      Partial
    {{#if expr}} ... [{{else}} ...] {{/if}}
    {{#unless expr}} ... [{{else}} ...] {{/unless}}
    {{#each path [as item [index]]}} ... [{{else}} ...] {{/each}}
    \\{{                                   a literal "{{"

``expr`` is ``path``, ``!path``, ``a === b`` or ``a !== b`` where each side
is a path or a literal. Literals are quoted strings, numbers, ``true``,
``false`` and ``null``.

Parsed documents are cached by their source text, so rendering the same
template repeatedly parses it once.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union


# =============================================================================
# Operands and Conditions
# =============================================================================

@dataclass(frozen=True, slots=True)
class Literal:
    value: Any


@dataclass(frozen=True, slots=True)
class PathRef:
    path: str


Operand = Union[Literal, PathRef]


@dataclass(frozen=True, slots=True)
class Condition:
    """
    Condition of an ``if``/``unless`` block.

    With ``op`` unset the condition is the truthiness of ``left`` (negated
    when ``negate`` is set). With ``op`` set to ``"==="`` or ``"!=="`` the two
    operands are compared.
    """

    left: Operand
    op: str | None = None
    right: Operand | None = None
    negate: bool = False


# =============================================================================
# Nodes
# =============================================================================

@dataclass(frozen=True, slots=True)
class Text:
    value: str


@dataclass(frozen=True, slots=True)
class Variable:
    path: str
    source: str


@dataclass(frozen=True, slots=True)
class Helper:
    name: str
    args: tuple[Operand, ...]
    source: str


@dataclass(frozen=True, slots=True)
class Partial:
    name: str
    source: str


@dataclass(frozen=True, slots=True)
class If:
    """``source`` is the opening tag, ``raw`` the whole block as written."""

    condition: Condition
    body: tuple[Node, ...]
    else_body: tuple[Node, ...]
    source: str
    raw: str = ""


@dataclass(frozen=True, slots=True)
class Unless:
    condition: Condition
    body: tuple[Node, ...]
    else_body: tuple[Node, ...]
    source: str
    raw: str = ""


@dataclass(frozen=True, slots=True)
class Each:
    path: str
    item_name: str
    index_name: str | None
    body: tuple[Node, ...]
    else_body: tuple[Node, ...]
    source: str
    raw: str = ""


@dataclass(frozen=True, slots=True)
class Malformed:
    """A tag kept verbatim in the output, with the reason it was not applied."""

    source: str
    reason: str


Node = Union[Text, Variable, Helper, Partial, If, Unless, Each, Malformed]
Document = tuple[Node, ...]


# =============================================================================
# Lexing
# =============================================================================

_TOKEN = re.compile(r"(?P<escape>\\\{\{)|(?P<tag>\{\{(?P<inner>.*?)\}\})", re.DOTALL)
_ARGUMENT = re.compile(r""""(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*'|\S+""")
_PATH = re.compile(r"[A-Za-z_$@][\w$@-]*(?:\.[\w$@-]+)*")
_NAME = re.compile(r"[A-Za-z_][\w-]*")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_COMPARISON = re.compile(r"^(?P<left>.+?)\s*(?P<op>===|!==)\s*(?P<right>.+)$")

_BLOCKS = ("if", "unless", "each")


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str  # "text" or "tag"
    value: str
    source: str = ""
    start: int = 0
    end: int = 0


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    buffer: list[str] = []

    for match in _TOKEN.finditer(text):
        buffer.append(text[pos:match.start()])
        if match.group("escape"):
            buffer.append("{{")
        else:
            if any(buffer):
                tokens.append(_Token("text", "".join(buffer)))
            buffer = []
            tokens.append(
                _Token("tag", match.group("inner").strip(), match.group(0), match.start(), match.end())
            )
        pos = match.end()

    buffer.append(text[pos:])
    if any(buffer):
        tokens.append(_Token("text", "".join(buffer)))
    return tokens


def _unquote(token: str) -> str:
    body = token[1:-1]
    return re.sub(r"\\(.)", r"\1", body)


def parse_operand(token: str) -> Operand | None:
    """
    Parse one argument or comparison side.

    Returns ``None`` when the token is neither a literal nor a valid path.
    """
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return Literal(_unquote(token))
    if token == "true":
        return Literal(True)
    if token == "false":
        return Literal(False)
    if token in ("null", "undefined"):
        return Literal(None)
    if _NUMBER.fullmatch(token):
        return Literal(float(token) if "." in token else int(token))
    if _PATH.fullmatch(token):
        return PathRef(token)
    return None


def parse_condition(expr: str) -> Condition | None:
    """Parse an ``if``/``unless`` expression, or return ``None`` if invalid."""
    expr = expr.strip()
    if not expr:
        return None

    comparison = _COMPARISON.match(expr)
    if comparison:
        left = parse_operand(comparison.group("left").strip())
        right = parse_operand(comparison.group("right").strip())
        if left is None or right is None:
            return None
        return Condition(left=left, op=comparison.group("op"), right=right)

    negate = expr.startswith("!")
    operand = parse_operand(expr[1:].strip() if negate else expr)
    if operand is None:
        return None
    return Condition(left=operand, negate=negate)


# =============================================================================
# Recursive Descent
# =============================================================================

class _Parser:
    def __init__(self, tokens: list[_Token], text: str) -> None:
        self.tokens = tokens
        self.text = text
        self.pos = 0

    def parse_nodes(self, closer: str | None) -> tuple[list[Node], str | None]:
        """
        Parse nodes until ``{{else}}`` or ``{{/closer}}``.

        Returns the nodes and the terminator that stopped parsing (``"else"``,
        ``"close"``, or ``None`` at end of input).
        """
        nodes: list[Node] = []
        while self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            self.pos += 1

            if token.kind == "text":
                nodes.append(Text(token.value))
                continue

            inner = token.value
            if inner == "else":
                if closer is not None:
                    return nodes, "else"
                nodes.append(Malformed(token.source, "'else' outside of a block"))
            elif inner.startswith("/"):
                name = inner[1:].strip()
                if name == closer:
                    return nodes, "close"
                nodes.append(Malformed(token.source, f"unexpected closing tag '/{name}'"))
            elif inner.startswith("#"):
                nodes.append(self._parse_block(token))
            elif inner.startswith(">"):
                nodes.append(self._parse_partial(token))
            else:
                nodes.append(self._parse_expression(token))

        return nodes, None

    def _parse_partial(self, token: _Token) -> Node:
        name = token.value[1:].strip()
        if not name or not re.fullmatch(r"[\w./-]+", name):
            return Malformed(token.source, "invalid partial name")
        return Partial(name, token.source)

    def _parse_expression(self, token: _Token) -> Node:
        parts = _ARGUMENT.findall(token.value)
        if not parts:
            return Malformed(token.source, "empty directive")

        head, *rest = parts
        if not rest:
            if _PATH.fullmatch(head):
                return Variable(head, token.source)
            return Malformed(token.source, f"invalid variable path '{head}'")

        if not _NAME.fullmatch(head):
            return Malformed(token.source, f"invalid helper name '{head}'")
        args = [parse_operand(part) for part in rest]
        if any(arg is None for arg in args):
            return Malformed(token.source, "invalid helper argument")
        return Helper(head, tuple(args), token.source)

    def _parse_block(self, token: _Token) -> Node:
        keyword, _, argument = token.value[1:].partition(" ")
        keyword = keyword.strip()
        if keyword not in _BLOCKS:
            return Malformed(token.source, f"unknown block '#{keyword}'")

        # A bad header leaves the body to be parsed as ordinary content
        if keyword == "each":
            header = _parse_each_header(argument)
        else:
            header = parse_condition(argument)
        if header is None:
            return Malformed(token.source, f"invalid '#{keyword}' header '{argument.strip()}'")

        start = self.pos
        body, terminator = self.parse_nodes(keyword)
        else_body: list[Node] = []
        if terminator == "else":
            else_body, terminator = self.parse_nodes(keyword)

        if terminator != "close":
            # Unclosed: keep the opener verbatim and reparse what followed it
            self.pos = start
            return Malformed(token.source, f"unclosed block '#{keyword}'")

        closer = self.tokens[self.pos - 1]
        raw = self.text[token.start:closer.end]
        if keyword == "each":
            path, item_name, index_name = header
            return Each(path, item_name, index_name, tuple(body), tuple(else_body), token.source, raw)

        node_type = If if keyword == "if" else Unless
        return node_type(header, tuple(body), tuple(else_body), token.source, raw)


def _parse_each_header(argument: str) -> tuple[str, str, str | None] | None:
    """
    Parse ``path``, ``path as item [index]`` or ``path as |item index|``.

    Returns ``(path, item_name, index_name)``, or ``None`` if invalid. The
    short form binds ``item`` and ``index``.
    """
    words = argument.replace("|", " ").split()
    if not words or not _PATH.fullmatch(words[0]):
        return None

    path, names = words[0], words[1:]
    if not names:
        return path, "item", "index"
    if names[0] != "as":
        return None

    names = names[1:]
    if not 1 <= len(names) <= 2 or not all(_NAME.fullmatch(name) for name in names):
        return None
    return path, names[0], names[1] if len(names) == 2 else None


@lru_cache(maxsize=512)
def parse(text: str) -> Document:
    """
    Parse template text into a document.

    Parameters
    ----------
    text : str
        Template source.

    Returns
    -------
    Document
        Tuple of top-level nodes. Identical text returns the identical
        (cached) document.

    Examples
    --------
    >>> parse("Hi {{name}}")
    (Text(value='Hi '), Variable(path='name', source='{{name}}'))
    """
    nodes, _ = _Parser(_tokenize(text), text).parse_nodes(None)
    return tuple(nodes)
