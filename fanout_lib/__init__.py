"""
fanout: materialize a directory tree from a template tree and a YAML model.

File and directory names in the template tree may contain {{ ... }}
placeholders. A placeholder resolving to a list repeats the entry once per
element, and that element becomes the context for everything beneath it
(nested names and file contents). File contents are Jinja2 templates.

Public API:
- generate_from_template(model_path, template_dir, output_dir, dry_run=False, custom_functions=None) -> RunReport
- Generator(template_storage, output_storage, model, custom_functions=None).run(template_root, output_root, dry_run) -> RunReport
- load_model(path) -> dict, normalize_model(value) -> dict, render_model(model) -> dict
- expand_segment(segment, context, model) -> list[ExpandedSegment]
- ContentRenderer(model, functions).render(text, context) -> str
- LocalStorage, MemoryStorage
"""
from .errors import ConfigShapeError, FanoutError, PathExpressionError, RenderError, StorageError
from .expander import ExpandedSegment, SegmentExpander, expand_segment
from .functions import BUILTIN_FUNCTIONS, build_functions
from .generator import Action, Generator, RunReport, generate_from_template
from .model import load_model, normalize_model, render_model
from .renderer import ContentRenderer
from .storage import Entry, LocalStorage, MemoryStorage, Storage

__all__ = [
    "Action",
    "BUILTIN_FUNCTIONS",
    "ConfigShapeError",
    "ContentRenderer",
    "Entry",
    "ExpandedSegment",
    "FanoutError",
    "Generator",
    "LocalStorage",
    "MemoryStorage",
    "PathExpressionError",
    "RenderError",
    "RunReport",
    "SegmentExpander",
    "Storage",
    "StorageError",
    "build_functions",
    "expand_segment",
    "generate_from_template",
    "load_model",
    "normalize_model",
    "render_model",
]
