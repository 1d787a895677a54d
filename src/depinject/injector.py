"""Dependency injector: make archives importable in the running process.

Two execution modes, dispatched on :class:`ExecutionMode`:

* ``APPENDING`` extends the host's own ``sys.path``; modules are importable by
  any host code straight away.
* ``ISOLATED`` builds an :class:`IsolatedContext` with a private module
  registry. Modules imported through it never stay in ``sys.modules``, so
  host code cannot see them and host modules of the same name do not clash
  with them.

Every archive is validated before the import system is touched, so either
all targets become importable or none do.
"""
from __future__ import annotations

import contextlib
import importlib
import importlib.abc
import importlib.machinery
import logging
import os
import sys
import threading
import zipfile
import zipimport
from types import ModuleType
from typing import Any, Callable, Dict, FrozenSet, Iterator, Sequence, Set, Tuple

from .errors import InjectionFailed
from .models import ExecutionMode, InjectionTarget

logger = logging.getLogger(__name__)

# One injection or context activation at a time per process.
_injection_lock = threading.RLock()


def _validate(paths: Sequence[str]) -> None:
    for path in paths:
        if not zipfile.is_zipfile(path):
            raise InjectionFailed(f"{path} is not an importable archive")
        try:
            zipimport.zipimporter(path)
        except zipimport.ZipImportError as exc:
            raise InjectionFailed(f"{path} cannot be imported from: {exc}") from exc


def _top_level_names(paths: Sequence[str]) -> FrozenSet[str]:
    names: Set[str] = set()
    for path in paths:
        with zipfile.ZipFile(path) as archive:
            for member in archive.namelist():
                head = member.split("/", 1)[0]
                if "/" not in member:
                    head = head.split(".", 1)[0]
                if head.isidentifier():
                    names.add(head)
    return frozenset(names)


def _top(name: str) -> str:
    return name.split(".", 1)[0]


def _resolve_entry_point(module: ModuleType, attribute: str) -> Callable[..., Any]:
    target: Any = module
    for part in attribute.split("."):
        target = getattr(target, part)
    return target


class AppendingContext:
    """Handle for archives appended to the host's ``sys.path``."""

    mode = ExecutionMode.APPENDING

    def __init__(self, name: str, paths: Tuple[str, ...]):
        self.name = name
        self.paths = paths

    def load(self, module_name: str) -> ModuleType:
        return importlib.import_module(module_name)

    def run(self, entry_point: str, *args: Any) -> Any:
        """Call ``package.module:function`` with ``args``."""
        module_name, _, attribute = entry_point.partition(":")
        return _resolve_entry_point(self.load(module_name), attribute or "main")(*args)


class _ContextFinder(importlib.abc.MetaPathFinder):
    """Finds modules of the context's namespaces inside its archives only."""

    def __init__(self, paths: Tuple[str, ...], provided: FrozenSet[str]):
        self._paths = list(paths)
        self._provided = provided

    def find_spec(self, fullname, path=None, target=None):
        if _top(fullname) not in self._provided:
            return None
        if "." not in fullname:
            search = self._paths
        elif path:
            search = list(path)
        else:
            # Namespace __path__ recomputed against sys.path comes back empty.
            parents = fullname.split(".")[:-1]
            search = [os.path.join(p, *parents) for p in self._paths]
        return importlib.machinery.PathFinder.find_spec(fullname, search)


class IsolatedContext:
    """A private import namespace scoped to one application instance.

    ``load`` and ``run`` import inside the context; ``activated`` keeps the
    context live for code that imports lazily. Outside of those, the
    context's modules exist only in :attr:`modules`.
    """

    mode = ExecutionMode.ISOLATED

    def __init__(self, name: str, paths: Tuple[str, ...]):
        self.name = name
        self.paths = paths
        self.provided = _top_level_names(paths)
        self.modules: Dict[str, ModuleType] = {}
        self._finder = _ContextFinder(paths, self.provided)

    def _owned(self, module_name: str) -> bool:
        return _top(module_name) in self.provided

    @contextlib.contextmanager
    def activated(self) -> Iterator["IsolatedContext"]:
        """Make the context's modules importable for the duration of the block."""
        with _injection_lock:
            hidden = {n: m for n, m in sys.modules.items() if self._owned(n)}
            for module_name in hidden:
                del sys.modules[module_name]
            sys.modules.update(self.modules)
            sys.meta_path.insert(0, self._finder)
            try:
                yield self
            finally:
                if self._finder in sys.meta_path:
                    sys.meta_path.remove(self._finder)
                for module_name in [n for n in sys.modules if self._owned(n)]:
                    self.modules[module_name] = sys.modules.pop(module_name)
                sys.modules.update(hidden)
                importlib.invalidate_caches()

    def load(self, module_name: str) -> ModuleType:
        with self.activated():
            return importlib.import_module(module_name)

    def run(self, entry_point: str, *args: Any) -> Any:
        """Call ``package.module:function`` inside the context."""
        module_name, _, attribute = entry_point.partition(":")
        with self.activated():
            module = importlib.import_module(module_name)
            return _resolve_entry_point(module, attribute or "main")(*args)


def _inject_appending(target: InjectionTarget) -> AppendingContext:
    paths = tuple(str(p) for p in target.paths)
    _validate(paths)
    added = []
    try:
        for path in paths:
            if path not in sys.path:
                sys.path.append(path)
                added.append(path)
        importlib.invalidate_caches()
    except Exception as exc:
        for path in added:
            if path in sys.path:
                sys.path.remove(path)
        raise InjectionFailed(f"cannot extend sys.path for {target.name}: {exc}") from exc
    logger.info("Appended %d archives to sys.path for %s", len(added), target.name)
    return AppendingContext(target.name, paths)


def _inject_isolated(target: InjectionTarget) -> IsolatedContext:
    paths = tuple(str(p) for p in target.paths)
    _validate(paths)
    try:
        context = IsolatedContext(target.name, paths)
    except (OSError, zipfile.BadZipFile, RuntimeError) as exc:
        raise InjectionFailed(f"cannot construct isolated context {target.name}: {exc}") from exc
    logger.info(
        "Created isolated context %s over %d archives (%s)",
        target.name, len(paths), ", ".join(sorted(context.provided)),
    )
    return context


_BEHAVIOURS = {
    ExecutionMode.APPENDING: _inject_appending,
    ExecutionMode.ISOLATED: _inject_isolated,
}


def inject(target: InjectionTarget):
    """Activate the target's archives in the requested execution mode.

    Args:
        target: Archives and execution mode.

    Returns:
        AppendingContext or IsolatedContext.

    Raises:
        InjectionFailed: If any archive is unusable or the import system
            refused the change; nothing is left half-injected.
    """
    with _injection_lock:
        return _BEHAVIOURS[target.mode](target)
