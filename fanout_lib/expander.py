"""
Expansion of ``{{ ... }}`` placeholders inside a single path segment.

A segment such as ``{{ features.name }}_{{ kinds }}.py`` expands into zero or
more rendered names, each paired with the context the branch continues with:

- a dotted path is resolved structurally against the branch context
  (``root.`` anchors it at the model, ``this.`` at the context explicitly);
- walking into a sequence either indexes it (numeric component) or broadcasts
  the field over every mapping element, the element becoming the context;
- a path that hits an empty sequence prunes the branch, a path that never
  matches anything falls back to evaluating the expression with Jinja2;
- several placeholders combine as a left-to-right cartesian product, later
  placeholders being evaluated in the context selected by earlier ones.
"""
import logging
import re
from typing import Any, List, Mapping, NamedTuple, Optional, Tuple

from .errors import PathExpressionError
from .renderer import ROOT_NAME, THIS_NAME, ContentRenderer, describe_error

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(.+?)\s*\}\}")
# Plain dotted paths only; anything with operators, calls or filters is an expression
DOTTED_PATH_PATTERN = re.compile(r"^[^\s.|()\[\]{}'\"+*/%~,<>=!]+(\.[^\s.|()\[\]{}'\"+*/%~,<>=!]+)*$")


class ExpandedSegment(NamedTuple):
    rendered: str
    context: Any


class _Node(NamedTuple):
    value: Any
    context: Any


def is_scalar(value: Any) -> bool:
    return not isinstance(value, (dict, list))


def _to_text(value: Any) -> str:
    return "" if value is None else str(value)


def resolve_path(value: Any, components: List[str], context: Any) -> Optional[List[_Node]]:
    """
    Walk components from value, broadcasting over sequences.

    Returns the resolved nodes, an empty list when the walk ran into an empty
    sequence, or None when nothing matched at some step.
    """
    nodes = [_Node(value, context)]
    for part in components:
        found: List[_Node] = []
        hit_empty = False
        for node in nodes:
            current = node.value
            if isinstance(current, dict):
                if part in current:
                    found.append(_Node(current[part], node.context))
            elif isinstance(current, list):
                if not current:
                    hit_empty = True
                elif part.isascii() and part.isdigit():
                    idx = int(part)
                    if idx < len(current):
                        found.append(_Node(current[idx], current[idx]))
                else:
                    for element in current:
                        if isinstance(element, dict) and part in element:
                            found.append(_Node(element[part], element))
        if not found:
            return [] if hit_empty else None
        nodes = found
    return nodes


def _branches(nodes: List[_Node]) -> List[Tuple[str, Any]]:
    # (text, context) per branch; non-scalars switch context and add no text
    branches: List[Tuple[str, Any]] = []
    for node in nodes:
        value = node.value
        if isinstance(value, list):
            for element in value:
                branches.append((_to_text(element) if is_scalar(element) else "", element))
        elif isinstance(value, dict):
            branches.append(("", value))
        else:
            branches.append((_to_text(value), node.context))
    return branches


class SegmentExpander:
    def __init__(self, model: Mapping[str, Any], renderer: ContentRenderer) -> None:
        self.model = model
        self.renderer = renderer

    def expand(self, segment: str, context: Any, source: Optional[str] = None) -> List[ExpandedSegment]:
        """
        Expand every placeholder of segment, left to right.

        Returns the rendered names in model order, each with the context its
        branch carries into nested entries. An empty list means the segment
        was pruned by an empty sequence. source, when given, is the template
        path reported in errors instead of the bare segment.
        """
        matches = list(PLACEHOLDER_PATTERN.finditer(segment))
        if not matches:
            return [ExpandedSegment(segment, context)]

        literals: List[str] = []
        last = 0
        for m in matches:
            literals.append(segment[last:m.start()])
            last = m.end()
        literals.append(segment[last:])

        results = [ExpandedSegment(literals[0], context)]
        for i, m in enumerate(matches):
            expression = m.group(1)
            expanded: List[ExpandedSegment] = []
            for partial in results:
                for text, ctx in self.resolve(expression, partial.context, source or segment):
                    expanded.append(ExpandedSegment(partial.rendered + text + literals[i + 1], ctx))
            results = expanded
            if not results:
                break

        logger.debug("Expanded %r into %d name(s)", segment, len(results))
        return results

    def resolve(self, expression: str, context: Any, segment: str = "") -> List[Tuple[str, Any]]:
        """Resolve one placeholder expression into (text, context) branches."""
        if DOTTED_PATH_PATTERN.match(expression):
            components = expression.split(".")
            start = context
            if components[0] == ROOT_NAME:
                start, components = self.model, components[1:]
            elif components[0] == THIS_NAME:
                components = components[1:]
            nodes = resolve_path(start, components, context)
            if nodes is not None:
                return _branches(nodes)
            logger.debug("No field matches %r, evaluating it as an expression", expression)

        try:
            value = self.renderer.evaluate(expression, context)
        except Exception as e:
            raise PathExpressionError(expression, segment or expression, describe_error(e)) from e
        return _branches([_Node(value, context)])


def expand_segment(segment: str, context: Any, model: Mapping[str, Any],
                   renderer: Optional[ContentRenderer] = None) -> List[ExpandedSegment]:
    """Expand one path segment without setting up a full generator."""
    return SegmentExpander(model, renderer or ContentRenderer(model)).expand(segment, context)
