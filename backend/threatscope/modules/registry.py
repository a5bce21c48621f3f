"""
Module Registry for ThreatScope scan modules.

Provides a central, class-level registry where modules register themselves
via the :meth:`ModuleRegistry.register` decorator.  The orchestrator uses
the registry to determine the execution order grouped by phase.
"""

from __future__ import annotations

from typing import Type

from threatscope.modules.base import BaseScanModule, ModulePhase


class ModuleRegistry:
    """Manages all available scan modules.

    Modules are stored in a class-level dictionary keyed by their unique
    ``name`` attribute.  Registration happens at import time through the
    :meth:`register` class-method decorator.

    Example::

        @ModuleRegistry.register
        class MyModule(BaseScanModule):
            name = "mymodule"
            ...
    """

    _modules: dict[str, Type[BaseScanModule]] = {}

    @classmethod
    def register(cls, module_class: Type[BaseScanModule]) -> Type[BaseScanModule]:
        """Register *module_class* under its ``name`` and return it unchanged."""
        cls._modules[module_class.name] = module_class
        return module_class

    @classmethod
    def unregister(cls, name: str) -> None:
        """Remove the module registered as *name*; unknown names are ignored."""
        cls._modules.pop(name, None)

    @classmethod
    def names(cls) -> list[str]:
        """Return the registered module names in registration order."""
        return list(cls._modules)

    @classmethod
    def get_module(cls, name: str) -> BaseScanModule:
        """Instantiate and return a single module by name.

        Raises:
            KeyError: If no module with the given name is registered.
        """
        return cls._modules[name]()

    @classmethod
    def get_all(cls) -> list[BaseScanModule]:
        """Return fresh instances of every registered module."""
        return [module_cls() for module_cls in cls._modules.values()]

    @classmethod
    def get_by_phase(cls, phase: ModulePhase) -> list[BaseScanModule]:
        """Return instances of all modules belonging to *phase*."""
        return [
            module_cls()
            for module_cls in cls._modules.values()
            if module_cls.phase == phase
        ]

    @classmethod
    def get_execution_order(
        cls, selected: list[str] | None = None
    ) -> list[list[BaseScanModule]]:
        """Return modules grouped by phase in ascending execution order.

        Modules within the same phase may be executed concurrently because
        they share no intra-phase dependencies.

        Args:
            selected: Optional list of module names to include.  When
                      ``None`` or empty, **all** registered modules are
                      returned.

        Returns:
            A list of lists, one inner list per phase, sorted by ascending
            phase value.
        """
        if selected:
            modules = [cls.get_module(name) for name in selected]
        else:
            modules = cls.get_all()

        phases: dict[int, list[BaseScanModule]] = {}
        for module in modules:
            phases.setdefault(module.phase.value, []).append(module)

        return [phases[phase_key] for phase_key in sorted(phases.keys())]
