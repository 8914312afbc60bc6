"""
Modules - group controllers and compose them through imports.

Example:
    @Module(controllers=[UsersController], imports=[AuthModule])
    class AppModule:
        pass

    app.register_module(AppModule)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence

from .metadata import MetadataKeys, MetadataStore, metadata


@dataclass(frozen=True)
class ModuleMetadata:
    controllers: List[type] = field(default_factory=list)
    imports: List[type] = field(default_factory=list)


def Module(
    controllers: Sequence[type] = (),
    imports: Sequence[type] = (),
    store: Optional[MetadataStore] = None,
) -> Callable[[type], type]:
    """Declare a module class owning ``controllers`` and importing other modules."""
    target_store = store or metadata

    def decorator(cls: type) -> type:
        target_store.define(
            MetadataKeys.MODULE,
            ModuleMetadata(list(controllers), list(imports)),
            cls,
        )
        return cls

    return decorator


def get_module_metadata(module: Any, store: Optional[MetadataStore] = None) -> ModuleMetadata:
    info = (store or metadata).get(MetadataKeys.MODULE, module)
    if info is None:
        raise TypeError(f"{getattr(module, '__name__', module)!r} is not a module; decorate it with @Module")
    return info


def collect_controllers(module: Any, store: Optional[MetadataStore] = None) -> List[type]:
    """
    Controllers of ``module`` and its imports.

    Imports are resolved depth-first before the module's own controllers.
    Each module and controller appears once, even with import cycles.
    """
    seen_modules: set = set()
    controllers: List[type] = []

    def visit(mod: Any) -> None:
        if mod in seen_modules:
            return
        seen_modules.add(mod)
        info = get_module_metadata(mod, store)
        for imported in info.imports:
            visit(imported)
        for controller in info.controllers:
            if controller not in controllers:
                controllers.append(controller)

    visit(module)
    return controllers
