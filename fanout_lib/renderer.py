import logging
from typing import Any, Callable, Dict, Mapping, Optional

from jinja2 import StrictUndefined, TemplateError, Undefined
from jinja2.sandbox import ImmutableSandboxedEnvironment

from .errors import RenderError
from .functions import build_functions

logger = logging.getLogger(__name__)

# Names that are always bound, whatever the current context holds.
ROOT_NAME = "root"
THIS_NAME = "this"


class ContentRenderer:
    """
    Render file bodies and single expressions with Jinja2.

    The namespace of a render is built from the current context: when it is a
    mapping, its keys are top-level variables. ``this`` is always the context
    itself and ``root`` is always the whole model, so a template nested deep in
    a fanned-out branch can still reach top-level values. Undefined names raise
    instead of rendering as blanks.
    """

    def __init__(self, model: Mapping[str, Any], functions: Optional[Mapping[str, Callable[..., Any]]] = None) -> None:
        self.model = model
        self.functions = functions if functions is not None else build_functions()
        self.env = ImmutableSandboxedEnvironment(
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self.env.filters.update(self.functions)
        self.env.globals.update(self.functions)

    def namespace(self, context: Any) -> Dict[str, Any]:
        ns: Dict[str, Any] = {}
        if isinstance(context, dict):
            ns.update(context)
        ns[THIS_NAME] = context
        ns[ROOT_NAME] = self.model
        return ns

    def render(self, text: str, context: Any, name: str = "<template>") -> str:
        """
        Render text as a template against context.

        Raises RenderError naming the template when the body is malformed,
        references something undefined or fails while it runs.
        """
        logger.debug("Rendering %s", name)
        try:
            template = self.env.from_string(text)
            return template.render(self.namespace(context))
        except Exception as e:
            raise RenderError(name, describe_error(e)) from e

    def evaluate(self, expression: str, context: Any) -> Any:
        """
        Evaluate a single expression and return its value (not its text).

        Jinja2 errors propagate unchanged; an expression that evaluates to an
        undefined value is reported as an UndefinedError of its own.
        """
        compiled = self.env.compile_expression(expression, undefined_to_none=False)
        value = compiled(self.namespace(context))
        if isinstance(value, Undefined):
            # Touching a StrictUndefined raises the UndefinedError that names it.
            str(value)
        return value


def describe_error(err: Exception) -> str:
    if not isinstance(err, TemplateError):
        return f"{err.__class__.__name__}: {err}"
    lineno = getattr(err, "lineno", None)
    msg = err.message or err.__class__.__name__
    if lineno:
        return f"line {lineno}: {msg}"
    return msg
