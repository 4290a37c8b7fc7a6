import importlib
import pkgutil
from types import ModuleType
from typing import Iterable, List

from dependency_injector import containers


def import_submodules(package_name: str) -> ModuleType:
    """Import a package and all its submodules recursively."""
    pkg = importlib.import_module(package_name)
    if not hasattr(pkg, "__path__"):
        return pkg

    prefix = pkg.__name__ + "."
    for modinfo in pkgutil.walk_packages(pkg.__path__, prefix=prefix):
        importlib.import_module(modinfo.name)
    return pkg


def wire_packages(
    container: containers.DeclarativeContainer,
    package_names: Iterable[str],
    extra_modules: Iterable[str] = (),
) -> None:
    """Import and wire every submodule of the given packages plus any extra modules."""
    packages: List[ModuleType] = [import_submodules(name) for name in package_names]
    modules: List[ModuleType] = [importlib.import_module(name) for name in extra_modules]
    container.wire(packages=packages, modules=modules)
