"""
Built-in transform functions available to templates and path expressions.

Every entry is registered both as a Jinja2 filter and as a global, so
``{{ name | snake_case }}`` and ``{{ snake_case(name) }}`` are equivalent.
Jinja2's own filters (lower, upper, title, replace, default, join, trim, ...)
stay available on top of these.
"""
import re
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

_WORD_PATTERN = re.compile(r"[A-Z]+(?=[A-Z][a-z0-9])|[A-Z]?[a-z0-9]+|[A-Z]+")
_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def _words(value: Any) -> List[str]:
    # "myHTTPServer_v2 name" -> ["my", "HTTP", "Server", "v2", "name"]
    return _WORD_PATTERN.findall(str(value))


def capitalize_first(value: Any) -> str:
    s = str(value)
    return (s[:1].upper() + s[1:]) if s else s


def snake_case(value: Any) -> str:
    return "_".join(w.lower() for w in _words(value))


def kebab_case(value: Any) -> str:
    return "-".join(w.lower() for w in _words(value))


def camel_case(value: Any) -> str:
    words = _words(value)
    if not words:
        return ""
    return words[0].lower() + "".join(w.capitalize() for w in words[1:])


def pascal_case(value: Any) -> str:
    return "".join(w.capitalize() for w in _words(value))


def slugify(value: Any, sep: str = "_") -> str:
    """Lower-case the value and collapse every run of non-alphanumerics into sep."""
    return _SLUG_STRIP.sub(sep, str(value).lower()).strip(sep)


def pluralize(value: Any) -> str:
    s = str(value)
    if not s:
        return s
    if re.search(r"(s|x|z|ch|sh)$", s):
        return s + "es"
    if re.search(r"[^aeiou]y$", s):
        return s[:-1] + "ies"
    return s + "s"


def quote(value: Any) -> str:
    return '"' + str(value).replace("\\", "\\\\").replace('"', '\\"') + '"'


BUILTIN_FUNCTIONS: Mapping[str, Callable[..., Any]] = MappingProxyType({
    "capitalize_first": capitalize_first,
    "snake_case": snake_case,
    "kebab_case": kebab_case,
    "camel_case": camel_case,
    "pascal_case": pascal_case,
    "slugify": slugify,
    "pluralize": pluralize,
    "quote": quote,
})


def build_functions(custom: Optional[Mapping[str, Callable[..., Any]]] = None) -> Mapping[str, Callable[..., Any]]:
    """
    Merge the built-in table with caller-supplied functions.

    Custom entries override built-ins of the same name. The result is a
    read-only mapping meant to be built once per run.
    """
    merged: Dict[str, Callable[..., Any]] = dict(BUILTIN_FUNCTIONS)
    if custom:
        for name, fn in custom.items():
            if not callable(fn):
                raise TypeError(f"custom function {name!r} is not callable")
            merged[str(name)] = fn
    return MappingProxyType(merged)
