"""
stencilforge.evaluator - Template Renderer
==========================================

Evaluates a parsed template against a ``Context``.

Rendering is total: a directive that cannot be applied (unknown variable,
unknown helper, helper that raises, missing partial, malformed tag) is left
in the output exactly as written and reported as a ``RenderIssue``. The only
error that escapes ``render()`` is ``PartialCycleError``, because a partial
that includes itself can never produce output.

Usage
-----
>>> from stencilforge.helpers import HelperRegistry
>>> evaluator = Evaluator(HelperRegistry())
>>> evaluator.render("Hello {{name}}!", {"name": "Ada"}).text
'Hello Ada!'
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from stencilforge.context import MISSING, Context, stringify
from stencilforge.errors import PartialCycleError
from stencilforge.helpers import HelperRegistry
from stencilforge.logger import get_logger
from stencilforge.parser import (
    Condition,
    Each,
    Helper,
    If,
    Literal,
    Malformed,
    Node,
    Operand,
    Partial,
    Text,
    Unless,
    Variable,
    parse,
)


logger = get_logger(__name__)

PARTIAL_NOT_FOUND = "<!-- Partial not found: {name} -->"


class PartialSource(Protocol):
    name: str
    content: str
    context: Mapping[str, Any]


PartialLoader = Callable[[str], "PartialSource | None"]


class IssueKind(str, Enum):
    """Why a directive was not applied."""

    UNRESOLVED_VARIABLE = "unresolved_variable"
    UNRESOLVED_ARGUMENT = "unresolved_argument"
    UNKNOWN_HELPER = "unknown_helper"
    HELPER_ERROR = "helper_error"
    MISSING_PARTIAL = "missing_partial"
    NOT_A_LIST = "not_a_list"
    MALFORMED = "malformed"
    DISABLED = "disabled"


@dataclass(frozen=True)
class RenderIssue:
    kind: IssueKind
    directive: str
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class RenderResult:
    """Rendered text plus every directive issue met on the way."""

    text: str
    issues: tuple[RenderIssue, ...] = ()

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues]

    @property
    def ok(self) -> bool:
        return not self.issues


# =============================================================================
# Value Conversion
# =============================================================================

def _strict_equal(a: Any, b: Any) -> bool:
    # true === 1 must not hold
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a is b
    if a is MISSING or b is MISSING:
        return a is b
    return a == b


# =============================================================================
# Evaluator
# =============================================================================

@dataclass
class _RenderState:
    issues: list[RenderIssue] = field(default_factory=list)
    partial_stack: list[str] = field(default_factory=list)

    def report(self, kind: IssueKind, directive: str, message: str) -> str:
        logger.debug(f"{message} ({directive})")
        self.issues.append(RenderIssue(kind, directive, message))
        return directive


class Evaluator:
    """
    Render templates with helpers and partials.

    Parameters
    ----------
    helpers : HelperRegistry | None
        Helper table. A fresh registry with the built-ins when omitted.

    partials : PartialLoader | None
        Callable returning the partial named by ``{{> name}}``, or ``None``
        when it does not exist. Without a loader every partial is missing.

    enable_helpers : bool
        When disabled, helper calls are left verbatim.

    enable_partials : bool
        When disabled, partial includes are left verbatim.
    """

    def __init__(
        self,
        helpers: HelperRegistry | None = None,
        partials: PartialLoader | None = None,
        *,
        enable_helpers: bool = True,
        enable_partials: bool = True,
    ) -> None:
        self.helpers = helpers if helpers is not None else HelperRegistry()
        self.partials = partials
        self.enable_helpers = enable_helpers
        self.enable_partials = enable_partials

    def render(
        self,
        template_text: str,
        context: Context | Mapping[str, Any] | None = None,
    ) -> RenderResult:
        """
        Render ``template_text`` against ``context``.

        Raises
        ------
        PartialCycleError
            If a partial includes itself, directly or transitively.
        """
        state = _RenderState()
        text = self._render_nodes(parse(template_text), Context.coerce(context), state)
        return RenderResult(text, tuple(state.issues))

    def interpolate(
        self,
        text: str,
        context: Context | Mapping[str, Any] | None = None,
    ) -> RenderResult:
        """
        Substitute ``{{path}}`` variables only.

        Used for output paths, where blocks, helpers and partials make no
        sense; every other directive is left verbatim without an issue.
        """
        ctx = Context.coerce(context)
        state = _RenderState()
        parts = []
        for node in parse(text):
            if isinstance(node, Text):
                parts.append(node.value)
            elif isinstance(node, Variable):
                parts.append(self._render_variable(node, ctx, state, allow_helpers=False))
            elif isinstance(node, (If, Unless, Each)):
                parts.append(node.raw)
            else:
                parts.append(node.source)
        return RenderResult("".join(parts), tuple(state.issues))

    # -------------------------------------------------------------------------
    # Node dispatch
    # -------------------------------------------------------------------------

    def _render_nodes(self, nodes: tuple[Node, ...], ctx: Context, state: _RenderState) -> str:
        return "".join(self._render_node(node, ctx, state) for node in nodes)

    def _render_node(self, node: Node, ctx: Context, state: _RenderState) -> str:
        if isinstance(node, Text):
            return node.value
        if isinstance(node, Variable):
            return self._render_variable(node, ctx, state)
        if isinstance(node, Helper):
            return self._render_helper(node, ctx, state)
        if isinstance(node, Partial):
            return self._render_partial(node, ctx, state)
        if isinstance(node, Each):
            return self._render_each(node, ctx, state)
        if isinstance(node, (If, Unless)):
            truth = self._evaluate(node.condition, ctx)
            if isinstance(node, Unless):
                truth = not truth
            branch = node.body if truth else node.else_body
            return self._render_nodes(branch, ctx, state)
        return state.report(IssueKind.MALFORMED, node.source, f"Malformed directive: {node.reason}")

    def _render_variable(
        self,
        node: Variable,
        ctx: Context,
        state: _RenderState,
        *,
        allow_helpers: bool = True,
    ) -> str:
        value = ctx.resolve(node.path)
        if value is not MISSING:
            return stringify(value)

        # {{gdprNotice}} calls a zero-argument helper
        if allow_helpers and self.enable_helpers and node.path in self.helpers:
            return self._render_helper(Helper(node.path, (), node.source), ctx, state)

        return state.report(
            IssueKind.UNRESOLVED_VARIABLE,
            node.source,
            f"Unresolved variable '{node.path}'",
        )

    def _render_helper(self, node: Helper, ctx: Context, state: _RenderState) -> str:
        if not self.enable_helpers:
            return state.report(IssueKind.DISABLED, node.source, f"Helpers are disabled: '{node.name}'")

        fn = self.helpers.lookup(node.name)
        if fn is None:
            return state.report(IssueKind.UNKNOWN_HELPER, node.source, f"Unknown helper '{node.name}'")

        args = []
        for arg in node.args:
            value = self._operand(arg, ctx)
            if value is MISSING:
                return state.report(
                    IssueKind.UNRESOLVED_ARGUMENT,
                    node.source,
                    f"Unresolved argument '{arg.path}' for helper '{node.name}'",
                )
            args.append(value)

        try:
            result = fn(ctx, *args)
        except Exception as e:
            return state.report(
                IssueKind.HELPER_ERROR,
                node.source,
                f"Helper '{node.name}' failed: {e}",
            )
        return stringify(result)

    def _render_partial(self, node: Partial, ctx: Context, state: _RenderState) -> str:
        if not self.enable_partials:
            return state.report(IssueKind.DISABLED, node.source, f"Partials are disabled: '{node.name}'")

        if node.name in state.partial_stack:
            raise PartialCycleError((*state.partial_stack, node.name))

        partial = self.partials(node.name) if self.partials is not None else None
        if partial is None:
            state.report(IssueKind.MISSING_PARTIAL, node.source, f"Partial not found: {node.name}")
            return PARTIAL_NOT_FOUND.format(name=node.name)

        scope = ctx.child(partial.context) if partial.context else ctx
        state.partial_stack.append(node.name)
        try:
            return self._render_nodes(parse(partial.content), scope, state)
        finally:
            state.partial_stack.pop()

    def _render_each(self, node: Each, ctx: Context, state: _RenderState) -> str:
        items = ctx.resolve(node.path)
        if not isinstance(items, (list, tuple)):
            state.report(
                IssueKind.NOT_A_LIST,
                node.source,
                f"'{node.path}' is not a list; each block rendered empty",
            )
            return ""
        if not items:
            return self._render_nodes(node.else_body, ctx, state)

        parts = []
        last_index = len(items) - 1
        for index, item in enumerate(items):
            bindings = {
                node.item_name: item,
                "first": index == 0,
                "last": index == last_index,
                "@index": index,
                "@first": index == 0,
                "@last": index == last_index,
            }
            if node.index_name:
                bindings[node.index_name] = index
            parts.append(self._render_nodes(node.body, ctx.child(bindings), state))
        return "".join(parts)

    # -------------------------------------------------------------------------
    # Conditions
    # -------------------------------------------------------------------------

    @staticmethod
    def _operand(operand: Operand, ctx: Context) -> Any:
        if isinstance(operand, Literal):
            return operand.value
        return ctx.resolve(operand.path)

    def _evaluate(self, condition: Condition, ctx: Context) -> bool:
        left = self._operand(condition.left, ctx)
        if condition.op is None:
            truth = bool(left)
            return not truth if condition.negate else truth

        right = self._operand(condition.right, ctx)
        equal = _strict_equal(left, right)
        return equal if condition.op == "===" else not equal
