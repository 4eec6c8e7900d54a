"""
Renderer for compiled psline templates.

Walks a compiled AST, substitutes module variables, suppresses groups whose
variables are all absent and applies group styles. The walk over a single
template uses an explicit stack; expanding a module reference into that
module's own template is bounded by ``max_depth``.
"""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional, Sequence

from ..constants import ALL_MODULES_VARIABLE, MAX_EXPANSION_DEPTH
from .ast import Format, Group, Text, VariableRef
from .style import StyleSpec, paint, parse_style

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleBinding:
    """Everything the renderer needs to expand one module.

    Attributes:
        name: Module name, as referenced from templates (``$git_branch``).
        format: The module's compiled template.
        variables: Values produced by the module's probe; None means absent.
        styles: Per-variable style strings from the probe.
        meta: Values supplied by configuration (``symbol``, ``style``) that
            are looked up after the probe's own variables.
    """
    name: str
    format: Format
    variables: Mapping[str, Optional[str]] = field(default_factory=lambda: MappingProxyType({}))
    styles: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    meta: Mapping[str, Optional[str]] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_empty(self) -> bool:
        """True when the probe produced no present variable."""
        return all(value is None for value in self.variables.values())


@dataclass(frozen=True)
class Segment:
    """A run of text with its effective style."""
    text: str
    style: Optional[StyleSpec] = None


@dataclass
class _Frame:
    children: tuple
    group: Optional[Group] = None
    index: int = 0
    segments: list = field(default_factory=list)
    saw_variable: bool = False
    saw_present: bool = False


class Renderer:
    """Renders compiled templates against a set of module bindings.

    Example:
        renderer = Renderer({"aws": binding})
        prompt = renderer.render(compile_cached("$aws$character"))
    """

    def __init__(
        self,
        bindings: Mapping[str, ModuleBinding],
        max_depth: int = MAX_EXPANSION_DEPTH,
        all_modules: Sequence[str] = (),
    ) -> None:
        """Initialize the Renderer.

        Args:
            bindings: Module bindings keyed by module name.
            max_depth: Maximum levels of module expansion below the
                top-level template.
            all_modules: Module names, in order, that ``$all`` expands to.
        """
        self._bindings = bindings
        self._max_depth = max_depth
        self._all_modules = tuple(all_modules)

    def render(self, root: Format, scope: Optional[ModuleBinding] = None) -> str:
        """Render a template to a string with terminal escape sequences."""
        return serialize_segments(self.render_segments(root, scope))

    def render_segments(self, root: Format, scope: Optional[ModuleBinding] = None) -> list[Segment]:
        """Render a template to styled segments.

        Args:
            root: The compiled template.
            scope: The module whose variables are in scope, or None for the
                top-level template.
        """
        chain = (scope.name,) if scope is not None else ()
        segments, _ = self._walk(root, scope, chain)
        return segments

    def render_module(self, name: str) -> str:
        """Render a single module as if referenced from the top level."""
        segments, _ = self._expand(name, ())
        return serialize_segments(segments)

    def _walk(
        self,
        root: Format,
        scope: Optional[ModuleBinding],
        chain: tuple,
    ) -> tuple[list[Segment], bool]:
        """Walk one template with an explicit stack.

        Returns:
            ``(segments, present)`` where ``present`` is True if any variable
            reference in the template resolved to a value.
        """
        stack = [_Frame(root.children)]

        while True:
            frame = stack[-1]

            if frame.index < len(frame.children):
                node = frame.children[frame.index]
                frame.index += 1

                if isinstance(node, Text):
                    if node.text:
                        frame.segments.append(Segment(node.text))
                elif isinstance(node, VariableRef):
                    segments, present = self._resolve(node.name, scope, chain)
                    frame.saw_variable = True
                    if present:
                        frame.saw_present = True
                        frame.segments.extend(segments)
                else:
                    stack.append(_Frame(node.children, group=node))
                continue

            stack.pop()
            if not stack:
                return frame.segments, frame.saw_present

            parent = stack[-1]
            parent.saw_variable = parent.saw_variable or frame.saw_variable
            parent.saw_present = parent.saw_present or frame.saw_present

            if frame.saw_variable and not frame.saw_present:
                continue
            parent.segments.extend(self._apply_group_style(frame, scope))

    def _apply_group_style(self, frame: _Frame, scope: Optional[ModuleBinding]) -> list[Segment]:
        group = frame.group
        if group is None or group.style is None:
            return frame.segments
        spec = parse_style(self._resolve_style(group.style, scope))
        return [
            Segment(segment.text, spec if segment.style is None else spec.combine(segment.style))
            for segment in frame.segments
        ]

    def _resolve_style(self, parts: tuple, scope: Optional[ModuleBinding]) -> str:
        resolved = []
        for part in parts:
            if isinstance(part, Text):
                resolved.append(part.text)
            elif scope is not None:
                value = scope.styles.get(part.name)
                if value is None:
                    value = scope.meta.get(part.name)
                if value is None:
                    value = scope.variables.get(part.name)
                resolved.append(value or "")
        return "".join(resolved)

    def _resolve(
        self,
        name: str,
        scope: Optional[ModuleBinding],
        chain: tuple,
    ) -> tuple[list[Segment], bool]:
        """Resolve a variable reference in the current scope.

        Lookup order: the scope module's own variables, its meta variables,
        then other modules by name. Anything else is absent.
        """
        if scope is not None:
            if name in scope.variables:
                value = scope.variables[name]
                if value is None:
                    return [], False
                style = scope.styles.get(name)
                spec = parse_style(style) if style is not None else None
                return ([Segment(value, spec)] if value else []), True
            if scope.meta.get(name) is not None:
                value = scope.meta[name]
                return ([Segment(value)] if value else []), True

        if name == ALL_MODULES_VARIABLE and scope is None:
            segments: list[Segment] = []
            for module_name in self._all_modules:
                module_segments, present = self._expand(module_name, chain)
                if present:
                    segments.extend(module_segments)
            return segments, bool(segments)

        if name in self._bindings:
            return self._expand(name, chain)

        return [], False

    def _expand(self, name: str, chain: tuple) -> tuple[list[Segment], bool]:
        binding = self._bindings.get(name)
        if binding is None or binding.is_empty:
            return [], False
        if name in chain:
            logger.warning(f"Module '{name}' references itself through {' -> '.join(chain)}")
            return [], False
        if len(chain) >= self._max_depth:
            logger.warning(
                f"Module '{name}' not expanded: nesting exceeds {self._max_depth} levels"
            )
            return [], False

        segments, _ = self._walk(binding.format, binding, chain + (name,))
        if not any(segment.text for segment in segments):
            return [], False
        return segments, True


def merge_segments(segments: Sequence[Segment]) -> list[Segment]:
    """Join adjacent segments that share a style."""
    merged: list[Segment] = []
    for segment in segments:
        if not segment.text:
            continue
        if merged and merged[-1].style == segment.style:
            merged[-1] = Segment(merged[-1].text + segment.text, segment.style)
        else:
            merged.append(segment)
    return merged


def serialize_segments(segments: Sequence[Segment]) -> str:
    """Concatenate segments, wrapping each styled run in SGR sequences."""
    return "".join(paint(segment.text, segment.style) for segment in merge_segments(segments))


def plain_text(segments: Sequence[Segment]) -> str:
    """Concatenate segment text without any styling."""
    return "".join(segment.text for segment in segments)
