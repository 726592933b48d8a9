from __future__ import annotations

import importlib.util
import itertools
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from types import ModuleType


_counter = itertools.count()


@contextmanager
def _on_sys_path(directory: Path | None) -> Iterator[None]:
    if directory is None or str(directory) in sys.path:
        yield
        return
    sys.path.insert(0, str(directory))
    try:
        yield
    finally:
        try:
            sys.path.remove(str(directory))
        except ValueError:
            pass


def exec_module(path: Path, prefix: str, *, search_path: Path | None = None, keep: bool = True) -> ModuleType:
    """
    Execute a Python file as a fresh, anonymous module.

    Every call gets a unique module name, so loading the same file twice runs it twice. With `keep`
    the module stays in `sys.modules`, where declarative models resolve their annotations; otherwise
    it is only registered while the file executes.
    `search_path` is put on `sys.path` while the file executes so it can import its neighbours.
    """
    name = f"_{prefix}_{next(_counter)}"
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        with _on_sys_path(search_path):
            spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(name, None)
        raise
    if not keep:
        sys.modules.pop(name, None)
    return module


def public_attributes(module: ModuleType) -> dict[str, object]:
    return {
        k: v for k, v in vars(module).items() if not k.startswith("_") and not isinstance(v, ModuleType)
    }
