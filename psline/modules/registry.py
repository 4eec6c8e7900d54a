"""
Module registry.

The registry is the closed set of modules a render pass may use, in the
order ``$all`` shows them.
"""
from typing import Iterator, Optional

from ..config import PromptConfig
from . import aws, directory, git, languages, status, system
from .base import ModuleDescriptor
from .custom import custom_modules


class ModuleRegistry:
    """Keeps prompt modules by name, in registration order.

    Example:
        registry = ModuleRegistry()
        registry.register(DIRECTORY)
        registry.get("directory")
    """

    def __init__(self) -> None:
        """Initialize an empty ModuleRegistry."""
        self._modules: dict[str, ModuleDescriptor] = {}

    def register(self, module: ModuleDescriptor) -> None:
        """Register a module.

        Raises:
            ValueError: If a module with the same name is already registered.
        """
        if module.name in self._modules:
            raise ValueError(f"Module '{module.name}' is already registered")
        self._modules[module.name] = module

    def unregister(self, name: str) -> None:
        """Unregister a module by name.

        Raises:
            KeyError: If no module with the given name is registered.
        """
        if name not in self._modules:
            raise KeyError(f"Module '{name}' is not registered")
        del self._modules[name]

    def get(self, name: str) -> Optional[ModuleDescriptor]:
        return self._modules.get(name)

    def list_modules(self) -> list[str]:
        """List registered module names in registration order."""
        return list(self._modules.keys())

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __iter__(self) -> Iterator[ModuleDescriptor]:
        return iter(self._modules.values())

    def __len__(self) -> int:
        return len(self._modules)


def builtin_modules() -> list[ModuleDescriptor]:
    """Every built-in module, in default ``$all`` order."""
    hostname, cmd_duration, jobs = system.MODULES
    status_module, character = status.MODULES
    return [
        *directory.MODULES,
        hostname,
        *git.MODULES,
        *languages.MODULES,
        *aws.MODULES,
        cmd_duration,
        jobs,
        status_module,
        character,
    ]


def build_registry(config: Optional[PromptConfig] = None) -> ModuleRegistry:
    """Registry of the built-in modules plus the configured custom ones.

    Custom modules are placed just before ``status`` and ``character`` so
    the prompt character stays last in ``$all``.
    """
    modules = builtin_modules()
    tail = modules[-2:]
    registry = ModuleRegistry()
    for module in [*modules[:-2], *custom_modules(config or PromptConfig()), *tail]:
        registry.register(module)
    return registry
