import logging
import posixpath
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Set

from .errors import RenderError, StorageError
from .expander import SegmentExpander
from .functions import build_functions
from .model import load_model, normalize_model, render_model
from .renderer import ContentRenderer
from .storage import Entry, LocalStorage, Storage, join

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".tmpl"


class Action(NamedTuple):
    kind: str  # mkdir, write, skip, remove, rmdir
    path: str
    size: Optional[int] = None

    def describe(self) -> str:
        if self.kind == "mkdir":
            return f"[DIR]   {self.path}"
        if self.kind == "write":
            return f"[FILE]  {self.path} ({self.size} bytes)"
        if self.kind == "skip":
            return f"[SKIP]  {self.path} (empty after rendering)"
        if self.kind == "remove":
            return f"[DEL]   {self.path} (stale, empty after rendering)"
        return f"[RMDIR] {self.path} (empty)"


class RunReport:
    """Ordered record of everything a run did, or would do in dry-run mode."""

    def __init__(self, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self.actions: List[Action] = []

    def add(self, kind: str, path: str, size: Optional[int] = None) -> None:
        action = Action(kind, path, size)
        self.actions.append(action)
        logger.info("%s%s", "(dry-run) " if self.dry_run else "", action.describe())

    def count(self, kind: str) -> int:
        return sum(1 for a in self.actions if a.kind == kind)

    def paths(self, kind: str) -> List[str]:
        return [a.path for a in self.actions if a.kind == kind]

    def lines(self) -> List[str]:
        return [a.describe() for a in self.actions]

    def summary(self) -> str:
        return (
            f"{self.count('write')} file(s) written, {self.count('skip')} skipped, "
            f"{self.count('mkdir')} director(y/ies) expanded, "
            f"{self.count('remove') + self.count('rmdir')} removed"
        )


class Generator:
    """
    Materialize a template tree into an output tree.

    The model is normalized (and, unless disabled, its own templated string
    values rendered) once at construction. Each call to run walks the template
    tree depth-first in name order, expanding every entry name against the
    current context and rendering file bodies with the context of their branch.
    """

    def __init__(
        self,
        template_storage: Storage,
        output_storage: Storage,
        model: Mapping[str, Any],
        custom_functions: Optional[Mapping[str, Callable[..., Any]]] = None,
        template_suffix: str = TEMPLATE_SUFFIX,
        render_model_values: bool = True,
    ) -> None:
        self.template_storage = template_storage
        self.output_storage = output_storage
        self.template_suffix = template_suffix
        self.functions = build_functions(custom_functions)
        normalized = normalize_model(model)
        self.model: Dict[str, Any] = render_model(normalized, self.functions) if render_model_values else normalized
        self.renderer = ContentRenderer(self.model, self.functions)
        self.expander = SegmentExpander(self.model, self.renderer)

    def run(self, template_root: str, output_root: str = "", dry_run: bool = False) -> RunReport:
        """
        Generate output_root from template_root.

        In dry-run mode nothing is written and the returned report lists the
        planned actions. Otherwise directories left empty by skipped files are
        removed afterwards, but only those this run created itself. The first
        error aborts the run.
        """
        report = RunReport(dry_run)
        created: Set[str] = set()

        if not _storage_call("stat", template_root, self.template_storage.is_dir, template_root):
            raise StorageError("list", template_root, "template root is not a directory")
        if not dry_run:
            # The output root itself is never a cleanup candidate
            self._make_dirs(output_root, None)

        logger.debug("Generating %r from %r (dry_run=%s)", output_root, template_root, dry_run)
        self._process_directory(template_root, output_root, self.model, dry_run, created, report)

        if not dry_run:
            self._remove_empty_created_dirs(created, report)
        logger.debug("Run finished: %s", report.summary())
        return report

    def _process_directory(self, template_dir: str, out_dir: str, context: Any, dry_run: bool,
                           created: Set[str], report: RunReport) -> None:
        entries: List[Entry] = _storage_call("list", template_dir, self.template_storage.list_dir, template_dir)
        for entry in entries:
            src = join(template_dir, entry.name)
            expanded = self.expander.expand(entry.name, context, source=src)
            if not expanded:
                logger.debug("Pruned %s: placeholder resolved to an empty sequence", src)
            for segment in expanded:
                if entry.is_dir:
                    out_path = join(out_dir, segment.rendered)
                    report.add("mkdir", out_path)
                    if not dry_run:
                        self._make_dirs(out_path, created)
                    self._process_directory(src, out_path, segment.context, dry_run, created, report)
                else:
                    self._process_file(src, entry.name, out_dir, segment.rendered, segment.context,
                                       dry_run, created, report)

    def _process_file(self, src: str, template_name: str, out_dir: str, rendered_name: str, context: Any,
                      dry_run: bool, created: Set[str], report: RunReport) -> None:
        if not rendered_name.strip():
            raise StorageError("write", src, "file name renders to an empty string")

        raw = _storage_call("read", src, self.template_storage.read_file, src)
        try:
            body = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RenderError(src, "template is not valid UTF-8 text") from e
        content = self.renderer.render(body, context, name=src)

        out_name = rendered_name
        if template_name.endswith(self.template_suffix) and out_name.endswith(self.template_suffix):
            out_name = out_name[:-len(self.template_suffix)]
        out_path = join(out_dir, out_name)

        if not content.strip():
            report.add("skip", out_path)
            if not dry_run and self._is_file(out_path):
                # Left over from a previous run
                _storage_call("remove", out_path, self.output_storage.remove_file, out_path)
                report.add("remove", out_path)
            return

        data = content.encode("utf-8")
        report.add("write", out_path, len(data))
        if dry_run:
            return
        self._make_dirs(posixpath.dirname(out_path), created)
        _storage_call("write", out_path, self.output_storage.write_file, out_path, data)

    def _is_file(self, path: str) -> bool:
        storage = self.output_storage
        return _storage_call("stat", path, storage.exists, path) and not _storage_call("stat", path, storage.is_dir, path)

    def _make_dirs(self, path: str, created: Optional[Set[str]]) -> None:
        # Create every missing component of path, remembering the ones we made
        storage = self.output_storage
        current = "/" if path.startswith("/") else ""
        for part in path.split("/"):
            if part in ("", "."):
                continue
            current = join(current, part)
            if _storage_call("stat", current, storage.exists, current):
                if not _storage_call("stat", current, storage.is_dir, current):
                    raise StorageError("mkdir", current, "a file with that name already exists")
                continue
            _storage_call("mkdir", current, storage.make_dir, current)
            if created is not None:
                created.add(current)

    def _remove_empty_created_dirs(self, created: Set[str], report: RunReport) -> None:
        storage = self.output_storage
        # Deepest first, so a parent is checked after its children are gone
        for path in sorted(created, key=lambda p: (p.count("/"), p), reverse=True):
            if not _storage_call("stat", path, storage.is_dir, path):
                continue
            if _storage_call("list", path, storage.list_dir, path):
                continue
            _storage_call("rmdir", path, storage.remove_dir, path)
            report.add("rmdir", path)
        created.clear()


def _storage_call(operation: str, path: str, fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return fn(*args)
    except OSError as e:
        raise StorageError(operation, path, e.strerror or str(e)) from e


def generate_from_template(
    model_path: str,
    template_dir: str,
    output_dir: str,
    dry_run: bool = False,
    custom_functions: Optional[Mapping[str, Callable[..., Any]]] = None,
    template_suffix: str = TEMPLATE_SUFFIX,
) -> RunReport:
    """
    Generate output_dir on the local filesystem from the template tree at
    template_dir and the YAML model at model_path.

    - Names of files and directories may hold {{ ... }} placeholders; a
      placeholder resolving to a list repeats the entry once per element.
    - File bodies are Jinja2 templates rendered against the context of their
      branch, with ``root`` bound to the whole model.
    - Files that render to whitespace only are not written (a stale copy from a
      previous run is deleted) and the template suffix (.tmpl) is stripped.
    """
    model = load_model(model_path)
    generator = Generator(
        LocalStorage(),
        LocalStorage(),
        model,
        custom_functions=custom_functions,
        template_suffix=template_suffix,
    )
    return generator.run(template_dir, output_dir, dry_run=dry_run)
