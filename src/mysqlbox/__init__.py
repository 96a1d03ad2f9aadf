"""mysqlbox — disposable MySQL sandboxes in Docker for test suites."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from mysqlbox.box import LifecycleManager as LifecycleManager
    from mysqlbox.box import sandbox as sandbox
    from mysqlbox.box import start as start
    from mysqlbox.config import Settings as Settings
    from mysqlbox.data import InitialData as InitialData
    from mysqlbox.handle import Handle as Handle
    from mysqlbox.handle import teardown as teardown

_EXPORTS = {
    "LifecycleManager": "mysqlbox.box",
    "sandbox": "mysqlbox.box",
    "start": "mysqlbox.box",
    "Settings": "mysqlbox.config",
    "InitialData": "mysqlbox.data",
    "Handle": "mysqlbox.handle",
    "teardown": "mysqlbox.handle",
}


def __getattr__(name: str) -> object:
    module_path = _EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'mysqlbox' has no attribute {name!r}")
