"""
Main entry point for psline.
"""
import argparse
import logging
import shutil
import sys
from typing import Optional

from rich.console import Console
from rich.table import Table

from .constants import APP_DESCRIPTION, APP_NAME, APP_VERSION, FALLBACK_PROMPT, SUPPORTED_SHELLS

logger = logging.getLogger(__name__)

# Replaced by the path of the psline executable in init scripts
_EXE_PLACEHOLDER = "__PSLINE__"


def _add_context_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-s", "--status",
        type=int,
        help="Exit status of the previous command"
    )

    parser.add_argument(
        "--pipestatus",
        type=str,
        help="Exit statuses of the previous pipeline, separated by spaces"
    )

    parser.add_argument(
        "-d", "--cmd-duration",
        type=int,
        help="Duration of the previous command in milliseconds"
    )

    parser.add_argument(
        "-j", "--jobs",
        type=int,
        default=0,
        help="Number of background jobs"
    )

    parser.add_argument(
        "-p", "--path",
        type=str,
        help="Current directory (defaults to the process working directory)"
    )

    parser.add_argument(
        "-P", "--logical-path",
        type=str,
        help="Current directory as the shell reports it"
    )

    parser.add_argument(
        "--shell",
        type=str,
        help="Shell the prompt is rendered for (bash, zsh, fish, powershell)"
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description=APP_DESCRIPTION
    )

    parser.add_argument(
        "-v", "--version",
        action="version",
        version=f"{APP_NAME} {APP_VERSION}"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to config file"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        help="Log level (DEBUG, INFO, WARNING, ERROR); defaults to $PSLINE_LOG or WARNING"
    )

    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write log records to this file"
    )

    subparsers = parser.add_subparsers(dest="command")

    prompt = subparsers.add_parser("prompt", help="Print the prompt")
    _add_context_arguments(prompt)
    prompt.add_argument(
        "--right",
        action="store_true",
        help="Print the right prompt instead"
    )

    module = subparsers.add_parser("module", help="Print a single module")
    module.add_argument("name", help="Module name")
    module.add_argument(
        "--explain",
        action="store_true",
        help="Also print the module's variables"
    )
    _add_context_arguments(module)

    subparsers.add_parser("modules", help="List available modules")

    timings = subparsers.add_parser("timings", help="Show how long each module takes")
    _add_context_arguments(timings)

    init = subparsers.add_parser("init", help="Print the shell integration script")
    init.add_argument("shell", choices=list(SUPPORTED_SHELLS))

    subparsers.add_parser("print-config", help="Print the effective configuration as JSON")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def parse_pipestatus(value: Optional[str]) -> list[int]:
    """Parse ``"0 1 0"`` into exit statuses, skipping anything that is not a number."""
    statuses = []
    for part in (value or "").split():
        try:
            statuses.append(int(part))
        except ValueError:
            logger.debug(f"Ignoring pipestatus entry {part!r}")
    return statuses


def generate_init(shell: str, executable: str) -> str:
    """Generate the shell integration script."""
    if shell == "bash":
        script = r'''
__psline_preexec() {
    [[ -z "$__psline_start" ]] && __psline_start=${EPOCHREALTIME/[.,]/}
}
trap '__psline_preexec' DEBUG

__psline_precmd() {
    local last_status=$? last_pipestatus="${PIPESTATUS[*]}"
    local duration=
    if [[ -n "$__psline_start" ]]; then
        local now=${EPOCHREALTIME/[.,]/}
        duration=$(( (now - __psline_start) / 1000 ))
    fi
    __psline_start=
    PS1="$("__PSLINE__" prompt --shell bash --status "$last_status" --pipestatus "$last_pipestatus" ${duration:+--cmd-duration=$duration} --jobs "$(jobs -p | wc -l)")"
}
PROMPT_COMMAND="__psline_precmd${PROMPT_COMMAND:+;$PROMPT_COMMAND}"
'''
    elif shell == "zsh":
        script = r'''
zmodload zsh/datetime
autoload -Uz add-zsh-hook

__psline_preexec() {
    __psline_start=$EPOCHREALTIME
}

__psline_precmd() {
    local last_status=$? last_pipestatus="${pipestatus[*]}"
    local duration=
    if [[ -n $__psline_start ]]; then
        duration=$(( (EPOCHREALTIME - __psline_start) * 1000 ))
        duration=${duration%.*}
        unset __psline_start
    fi
    PROMPT="$("__PSLINE__" prompt --shell zsh --status "$last_status" --pipestatus "$last_pipestatus" ${duration:+--cmd-duration=$duration} --jobs ${#jobstates})"
    RPROMPT="$("__PSLINE__" prompt --right --shell zsh --status "$last_status" --jobs ${#jobstates})"
}

add-zsh-hook preexec __psline_preexec
add-zsh-hook precmd __psline_precmd
'''
    elif shell == "fish":
        script = r'''
function fish_prompt
    set -g __psline_status $status
    set -l last_pipestatus $pipestatus
    "__PSLINE__" prompt --shell fish --status $__psline_status --pipestatus "$last_pipestatus" --cmd-duration=$CMD_DURATION --jobs (count (jobs -p))
end

function fish_right_prompt
    "__PSLINE__" prompt --right --shell fish --status $__psline_status
end
'''
    elif shell == "powershell":
        script = r'''
function global:prompt {
    $lastSuccess = $?
    $lastExit = $global:LASTEXITCODE
    $exitStatus = if ($lastSuccess) { 0 } elseif ($lastExit) { $lastExit } else { 1 }
    $duration = 0
    $lastCommand = Get-History -Count 1
    if ($lastCommand) {
        $duration = [int]($lastCommand.EndExecutionTime - $lastCommand.StartExecutionTime).TotalMilliseconds
    }
    $jobCount = @(Get-Job | Where-Object { $_.State -eq 'Running' }).Count
    $output = & '__PSLINE__' prompt --shell powershell --status $exitStatus --cmd-duration=$duration --jobs $jobCount
    $global:LASTEXITCODE = $lastExit
    $output -join "`n"
}
'''
    else:
        return ""
    return script.replace(_EXE_PLACEHOLDER, executable)


def _load_config(path: Optional[str]):
    from .config import ConfigError, PromptConfig, config_path, load_config

    try:
        return load_config(config_path(path))
    except ConfigError as e:
        logger.warning(f"Config error: {e}; using defaults")
        return PromptConfig()


def _build_context(args: argparse.Namespace, config):
    from .context import ContextBuilder

    return ContextBuilder(command_timeout_ms=config.command_timeout).build(
        path=args.path,
        logical_path=args.logical_path,
        status=args.status,
        pipestatus=parse_pipestatus(args.pipestatus),
        cmd_duration_ms=args.cmd_duration,
        jobs=args.jobs,
        shell=args.shell,
    )


def _print_modules(console: Console, driver) -> None:
    table = Table(
        title="Modules",
        show_header=True,
        header_style="bold"
    )

    table.add_column("Module", style="cyan")
    table.add_column("Description", style="dim")
    table.add_column("Enabled")

    for module in driver.registry:
        options = driver.config.module(module.name)
        table.add_row(module.name, module.description, "no" if options.disabled else "yes")

    console.print(table)


def _print_report(console: Console, report, explain: bool) -> None:
    sys.stdout.write(report.output + "\n")
    sys.stdout.flush()

    status = "inactive" if not report.active else "timed out" if report.timed_out else "ok"
    if report.error:
        status = f"failed: {report.error}"
    console.print(f"[dim]{report.name}: {status} in {report.elapsed_ms:.1f}ms[/dim]")

    if explain and report.variables:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Variable", style="cyan")
        table.add_column("Value")
        for name, value in report.variables.items():
            table.add_row(name, "[dim]absent[/dim]" if value is None else repr(value))
        console.print(table)


def _print_timings(console: Console, scan, outcomes) -> None:
    table = Table(
        title="Timings",
        show_header=True,
        header_style="bold"
    )

    table.add_column("Module", style="cyan")
    table.add_column("Time", justify="right")
    table.add_column("Result")

    scan_result = scan.error if scan.failed else f"{len(scan.listing)} entries"
    table.add_row("(scan)", f"{scan.elapsed_ms:.1f}ms", scan_result)
    for outcome in outcomes:
        if outcome.timed_out:
            result = "timed out"
        elif outcome.error:
            result = outcome.error
        elif outcome.result.is_empty:
            result = "absent"
        else:
            result = "ok"
        table.add_row(outcome.name, f"{outcome.elapsed_ms:.1f}ms", result)

    console.print(table)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    from .log import setup_logging
    setup_logging(args.log_level, args.log_file)

    if args.command is None:
        build_parser().print_help()
        return 2

    if args.command == "init":
        executable = shutil.which(APP_NAME) or APP_NAME
        print(generate_init(args.shell, executable))
        return 0

    config = _load_config(args.config)

    if args.command == "print-config":
        from .config import export_config
        print(export_config(config))
        return 0

    from .prompt import PromptDriver
    driver = PromptDriver(config)
    console = Console(stderr=args.command == "module")

    if args.command == "modules":
        _print_modules(console, driver)
        return 0

    if args.command == "prompt":
        try:
            context = _build_context(args, config)
        except OSError as e:
            # The working directory may have been deleted under the shell
            logger.warning(f"Cannot inspect the current directory: {e}")
            sys.stdout.write("" if args.right else FALLBACK_PROMPT)
            return 0
        sys.stdout.write(driver.render_prompt(context, right=args.right))
        sys.stdout.flush()
        return 0

    context = _build_context(args, config)

    if args.command == "module":
        try:
            report = driver.render_module(context, args.name)
        except KeyError:
            console.print(f"[red]Unknown module: {args.name}[/red]")
            return 1
        _print_report(console, report, args.explain)
        return 0

    if args.command == "timings":
        scan, outcomes = driver.timings(context)
        _print_timings(console, scan, outcomes)
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(main())
