"""
Base types for prompt modules.

A module is plain data: a name, a detection predicate, a probe callable and
template defaults. Modules share no behaviour beyond detection and
evaluation, so there is no class hierarchy to extend.
"""
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Mapping, Optional

from ..config import ModuleOptions

if TYPE_CHECKING:
    from ..context import Context
    from ..detection import DirListing


@dataclass(frozen=True)
class ModuleResult:
    """Variables produced by one probe.

    Attributes:
        variables: Variable name to value. None marks the variable absent,
            which is different from an empty string.
        styles: Optional per-variable style strings. The ``style`` key
            overrides the module's ``$style``.
    """
    variables: Mapping[str, Optional[str]] = field(default_factory=lambda: MappingProxyType({}))
    styles: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def absent(cls) -> "ModuleResult":
        """The result of a probe that has nothing to show."""
        return _ABSENT

    @classmethod
    def of(cls, styles: Optional[Mapping[str, str]] = None, **variables: Optional[str]) -> "ModuleResult":
        """Build a result from keyword arguments.

        Example:
            ModuleResult.of(branch="main", remote=None)
        """
        return cls(
            variables=MappingProxyType(dict(variables)),
            styles=MappingProxyType(dict(styles or {})),
        )

    @property
    def is_empty(self) -> bool:
        """True if no variable is present."""
        return all(value is None for value in self.variables.values())

    def get(self, name: str) -> Optional[str]:
        return self.variables.get(name)


_ABSENT = ModuleResult()


@dataclass(frozen=True)
class Detection:
    """When a module is active.

    A module is active if it is ``always_on``, if the current directory
    contains one of ``files``, a file with one of ``extensions`` or one of
    ``folders``, or if the ``when`` shell command exits with status 0.
    """
    files: tuple = ()
    extensions: tuple = ()
    folders: tuple = ()
    when: Optional[str] = None
    always_on: bool = False

    @property
    def uses_listing(self) -> bool:
        return bool(self.files or self.extensions or self.folders)

    @property
    def has_predicate(self) -> bool:
        return self.uses_listing or self.when is not None

    def matches(self, listing: "DirListing") -> bool:
        """Evaluate the filesystem part of the predicate against a listing."""
        return (
            listing.has_any_file(self.files)
            or listing.has_any_extension(self.extensions)
            or listing.has_any_folder(self.folders)
        )

    def with_overrides(self, options: ModuleOptions) -> "Detection":
        """Apply the detection overrides from a module's options."""
        changes = {}
        if options.detect_files is not None:
            changes["files"] = options.detect_files
        if options.detect_extensions is not None:
            changes["extensions"] = options.detect_extensions
        if options.detect_folders is not None:
            changes["folders"] = options.detect_folders
        if options.when is not None:
            changes["when"] = options.when
        return replace(self, **changes) if changes else self


Probe = Callable[["Context", ModuleOptions], Optional[ModuleResult]]


@dataclass(frozen=True)
class ModuleDescriptor:
    """A prompt module.

    Attributes:
        name: Identifier used in templates (``$name``) and config tables.
        description: One line shown by ``psline modules``.
        probe: Computes the module's variables from the context.
        detection: Activation predicate.
        format: Default template.
        style: Default style, exposed to the template as ``$style``.
        symbol: Default symbol, exposed to the template as ``$symbol``.
        timeout: Default probe timeout in milliseconds; None uses the
            global ``command_timeout``.
    """
    name: str
    description: str
    probe: Probe = field(compare=False)
    detection: Detection = Detection()
    format: str = "[$symbol]($style)"
    style: str = ""
    symbol: str = ""
    timeout: Optional[int] = None

    def format_for(self, options: ModuleOptions) -> str:
        return options.format if options.format is not None else self.format

    def style_for(self, options: ModuleOptions) -> str:
        return options.style if options.style is not None else self.style

    def symbol_for(self, options: ModuleOptions) -> str:
        return options.symbol if options.symbol is not None else self.symbol

    def timeout_for(self, options: ModuleOptions, default_ms: int) -> int:
        """Per-module option, then module default, then the global default."""
        if options.timeout is not None:
            return options.timeout
        if self.timeout is not None:
            return self.timeout
        return default_ms

    def detection_for(self, options: ModuleOptions) -> Detection:
        return self.detection.with_overrides(options)

    def evaluate(self, context: "Context", options: ModuleOptions) -> ModuleResult:
        """Run the probe; a probe returning None yields the absent result."""
        result = self.probe(context, options)
        return result if result is not None else ModuleResult.absent()
