from typing import Optional


class FanoutError(Exception):
    """Base class for every error that aborts a generation run."""


class ConfigShapeError(FanoutError, ValueError):
    """The model is not a mapping at the top level or could not be parsed."""


class PathExpressionError(FanoutError):
    """A placeholder in a file or directory name could not be evaluated."""

    def __init__(self, expression: str, segment: str, reason: str) -> None:
        self.expression = expression
        self.segment = segment
        self.reason = reason
        super().__init__(f"cannot evaluate {{{{ {expression} }}}} in {segment!r}: {reason}")


class RenderError(FanoutError):
    """A template body referenced an undefined value or is malformed."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"render {name}: {reason}")


class StorageError(FanoutError):
    """A read, write, listing or removal against a storage failed."""

    def __init__(self, operation: str, path: str, reason: Optional[str] = None) -> None:
        self.operation = operation
        self.path = path
        msg = f"{operation} {path!r} failed"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
