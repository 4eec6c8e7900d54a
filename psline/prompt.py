"""
Prompt driver: one render pass from context snapshot to prompt string.

A pass lists the current directory once, selects the active modules,
evaluates the reachable ones concurrently and renders the top-level
template. Nothing raised inside a pass reaches the shell.
"""
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Sequence

from .config import PromptConfig
from .constants import ALL_MODULES_VARIABLE, DEFAULT_FORMAT, FALLBACK_PROMPT
from .context import Context
from .detection import ScanOutcome, detect, list_directory, scan_directory
from .formatter import (
    Format,
    FormatSyntaxError,
    ModuleBinding,
    Renderer,
    Segment,
    compile_cached,
    paint,
    variables,
)
from .formatter.renderer import merge_segments
from .modules.base import ModuleDescriptor, ModuleResult
from .modules.registry import ModuleRegistry, build_registry
from .scheduler import ProbeOutcome, Scheduler

logger = logging.getLogger(__name__)

_SGR_SEQUENCE = re.compile(r"\x1b\[[0-9;:]*m")

# Markers telling the shell's line editor that an escape takes no columns
_NON_PRINTING = {
    "bash": (r"\[", r"\]"),
    "zsh": ("%{", "%}"),
}


_BASH_ESCAPES = str.maketrans({"\\": r"\134\134", "$": r"\134$", "`": r"\134`"})


def escape_for_shell(text: str, shell: str) -> str:
    """Escape characters the shell's prompt expansion would interpret."""
    if shell == "zsh":
        return text.replace("%", "%%")
    if shell == "bash":
        # PS1 is decoded for backslash escapes and then expanded like a
        # double-quoted word. The octal \134 decodes to a backslash that
        # the expansion step then treats as quoting the next character.
        return text.translate(_BASH_ESCAPES)
    return text


def wrap_escapes(text: str, shell: str) -> str:
    """Wrap every SGR sequence in the shell's non-printing markers."""
    markers = _NON_PRINTING.get(shell)
    if markers is None:
        return text
    start, end = markers
    return _SGR_SEQUENCE.sub(lambda match: f"{start}{match.group(0)}{end}", text)


def to_shell(segments: Sequence[Segment], shell: str) -> str:
    """Serialize rendered segments for a given shell."""
    painted = "".join(
        paint(escape_for_shell(segment.text, shell), segment.style)
        for segment in merge_segments(segments)
    )
    return wrap_escapes(painted, shell)


@dataclass(frozen=True)
class RenderPass:
    """Everything one pass learned before rendering."""
    scan: ScanOutcome
    active: tuple
    outcomes: tuple

    def results(self) -> dict[str, ModuleResult]:
        return {outcome.name: outcome.result for outcome in self.outcomes}


@dataclass(frozen=True)
class ModuleReport:
    """Output of ``psline module NAME``."""
    name: str
    active: bool
    output: str
    elapsed_ms: float
    variables: dict = field(default_factory=dict)
    timed_out: bool = False
    error: Optional[str] = None


class PromptDriver:
    """Runs render passes.

    Example:
        driver = PromptDriver(load_config())
        prompt = driver.render_prompt(ContextBuilder().build(status=0))
    """

    def __init__(
        self,
        config: Optional[PromptConfig] = None,
        registry: Optional[ModuleRegistry] = None,
        lister: Callable = list_directory,
    ) -> None:
        """Initialize the PromptDriver.

        Args:
            config: Effective configuration (defaults if not provided).
            registry: Modules available to templates; built from ``config``
                if not provided.
            lister: Directory listing function handed to the scan.
        """
        self._config = config or PromptConfig()
        self._registry = registry if registry is not None else build_registry(self._config)
        self._lister = lister
        self._scheduler = Scheduler(self._config)

    @property
    def config(self) -> PromptConfig:
        return self._config

    @property
    def registry(self) -> ModuleRegistry:
        return self._registry

    def render_prompt(self, context: Context, right: bool = False) -> str:
        """Render the left (or right) prompt. Never raises.

        An unexpected error produces the minimal prompt ``"> "`` (an empty
        right prompt).
        """
        try:
            return self._render_prompt(context, right)
        except Exception:
            logger.exception("Prompt rendering failed")
            return "" if right else FALLBACK_PROMPT

    def _render_prompt(self, context: Context, right: bool) -> str:
        template = self._config.right_format if right else self._config.format
        if right and not template:
            return ""

        top = self._compile_top(template, right)
        all_modules = self._all_modules()
        formats = self._module_formats()
        needed = self._reachable(top, formats, all_modules)

        render_pass = self.run_pass(context, [m for m in self._registry if m.name in needed])
        renderer = Renderer(self._bindings(render_pass, formats), all_modules=all_modules)
        output = to_shell(renderer.render_segments(top), context.shell)

        if self._config.add_newline and not right:
            output = "\n" + output
        return output

    def run_pass(self, context: Context, candidates: Optional[Iterable[ModuleDescriptor]] = None) -> RenderPass:
        """Scan, detect and evaluate.

        Args:
            context: The context snapshot.
            candidates: Modules to consider (every registered module if not
                provided).
        """
        modules = list(candidates) if candidates is not None else list(self._registry)
        scan = self.scan(context)
        active = detect(modules, scan.listing, context, self._config)
        outcomes = self._scheduler.evaluate_timed(active, context)
        return RenderPass(scan=scan, active=tuple(active), outcomes=tuple(outcomes))

    def scan(self, context: Context) -> ScanOutcome:
        return scan_directory(context.cwd, self._config.scan_timeout, self._lister)

    def render_module(self, context: Context, name: str) -> ModuleReport:
        """Detect, evaluate and render a single module.

        Raises:
            KeyError: If no module with this name is registered.
        """
        module = self._registry.get(name)
        if module is None:
            raise KeyError(f"Module '{name}' is not registered")

        started = time.perf_counter()
        render_pass = self.run_pass(context, [module])
        if not render_pass.outcomes:
            return ModuleReport(name, False, "", (time.perf_counter() - started) * 1000)

        outcome = render_pass.outcomes[0]
        renderer = Renderer(self._bindings(render_pass, self._module_formats()))
        output = renderer.render_module(name)
        return ModuleReport(
            name=name,
            active=True,
            output=output,
            elapsed_ms=(time.perf_counter() - started) * 1000,
            variables=dict(outcome.result.variables),
            timed_out=outcome.timed_out,
            error=outcome.error,
        )

    def timings(self, context: Context) -> tuple[ScanOutcome, list[ProbeOutcome]]:
        """Evaluate every active module; outcomes sorted slowest first."""
        render_pass = self.run_pass(context)
        outcomes = sorted(render_pass.outcomes, key=lambda outcome: outcome.elapsed_ms, reverse=True)
        return render_pass.scan, outcomes

    def _compile_top(self, template: str, right: bool) -> Format:
        try:
            return compile_cached(template)
        except FormatSyntaxError as e:
            which = "right_format" if right else "format"
            logger.warning(f"Invalid {which}: {e}; using the default")
            return compile_cached("" if right else DEFAULT_FORMAT)

    def _compile_module(self, module: ModuleDescriptor) -> Format:
        """Compile a module's template, falling back to its built-in one."""
        options = self._config.module(module.name)
        try:
            return compile_cached(module.format_for(options))
        except FormatSyntaxError as e:
            logger.warning(f"Invalid format for module '{module.name}': {e}")
        try:
            return compile_cached(module.format)
        except FormatSyntaxError as e:
            logger.warning(f"Invalid built-in format for module '{module.name}': {e}")
        return compile_cached("")

    def _module_formats(self) -> dict[str, Format]:
        return {module.name: self._compile_module(module) for module in self._registry}

    def _all_modules(self) -> list[str]:
        """Modules ``$all`` expands to: those not placed explicitly."""
        placed: set[str] = set()
        for template in (self._config.format, self._config.right_format):
            try:
                placed.update(variables(compile_cached(template)))
            except FormatSyntaxError:
                continue
        return [name for name in self._registry.list_modules() if name not in placed]

    def _reachable(self, top: Format, formats: dict[str, Format], all_modules: Sequence[str]) -> set[str]:
        """Names of modules the template can expand, directly or through others."""
        pending = list(variables(top))
        if ALL_MODULES_VARIABLE in pending:
            pending.extend(all_modules)

        reachable: set[str] = set()
        while pending:
            name = pending.pop()
            if name in reachable or name not in formats:
                continue
            reachable.add(name)
            pending.extend(variables(formats[name]))
        return reachable

    def _bindings(self, render_pass: RenderPass, formats: dict[str, Format]) -> dict[str, ModuleBinding]:
        bindings = {}
        results = render_pass.results()
        for module in render_pass.active:
            options = self._config.module(module.name)
            result = results.get(module.name, ModuleResult.absent())
            bindings[module.name] = ModuleBinding(
                name=module.name,
                format=formats[module.name],
                variables=result.variables,
                styles=result.styles,
                meta={
                    "symbol": module.symbol_for(options),
                    "style": module.style_for(options),
                },
            )
        return bindings


def render_prompt(
    context: Context,
    config: Optional[PromptConfig] = None,
    right: bool = False,
    lister: Callable = list_directory,
) -> str:
    """Render a prompt with a fresh driver. Never raises."""
    try:
        driver = PromptDriver(config, lister=lister)
    except Exception:
        logger.exception("Failed to set up the prompt driver")
        return "" if right else FALLBACK_PROMPT
    return driver.render_prompt(context, right=right)
