import logging
from typing import Any, Callable, Dict, Mapping, Optional

import yaml

from .errors import ConfigShapeError, StorageError
from .functions import build_functions
from .renderer import ContentRenderer

logger = logging.getLogger(__name__)

_MARKUP = ("{{", "{%")


def _key_to_str(key: Any) -> str:
    # Spell YAML's special keys the way they are written in the file
    if key is True:
        return "true"
    if key is False:
        return "false"
    if key is None:
        return "null"
    return str(key)


def _normalize(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {_key_to_str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def normalize_model(value: Any) -> Dict[str, Any]:
    """
    Convert a parsed config value into the canonical model.

    Map keys become strings, nested maps and sequences are normalized
    recursively and scalars pass through. The top level must be a mapping.
    """
    if not isinstance(value, Mapping):
        raise ConfigShapeError(
            f"model must be a mapping at the top level, got {type(value).__name__}"
        )
    return _normalize(value)


def load_model(path: str) -> Dict[str, Any]:
    """Load a YAML model file and normalize it."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigShapeError(f"{path}: invalid YAML: {e}") from e
    except OSError as e:
        raise StorageError("read", path, e.strerror) from e
    if data is None:
        raise ConfigShapeError(f"{path}: model file is empty")
    try:
        model = normalize_model(data)
    except ConfigShapeError as e:
        raise ConfigShapeError(f"{path}: {e}") from e
    logger.debug("Loaded model from %s with keys %s", path, list(model))
    return model


def render_model(model: Dict[str, Any], functions: Optional[Mapping[str, Callable[..., Any]]] = None) -> Dict[str, Any]:
    """
    Render the string values of the model that contain template markup.

    Each string is rendered with its nearest enclosing mapping as context and
    ``root`` bound to the model as loaded, so values can be derived from their
    siblings, e.g. ``projectSlug: "{{ projectName | slugify }}"``. Returns a
    new model; the input is left untouched.
    """
    renderer = ContentRenderer(model, functions if functions is not None else build_functions())

    def walk(value: Any, parent: Any, where: str) -> Any:
        if isinstance(value, str):
            if not any(m in value for m in _MARKUP):
                return value
            return renderer.render(value, parent, name=f"model value {where}")
        if isinstance(value, dict):
            return {k: walk(v, value, f"{where}.{k}" if where else k) for k, v in value.items()}
        if isinstance(value, list):
            return [walk(v, parent, f"{where}[{i}]") for i, v in enumerate(value)]
        return value

    return walk(model, model, "")
