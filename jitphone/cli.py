"""jitphone CLI -- compile, convert, run and inspect code from the terminal."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from jitphone import __version__
from jitphone.errors import JITPhoneError

console = Console()

_EXTENSION_DIALECTS = {
    ".swift": "swift",
    ".m": "objc",
    ".mm": "objc",
    ".h": "objc",
    ".js": "javascript",
}


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _settings(ctx: click.Context):
    from jitphone.config import load_settings

    if "settings" not in ctx.obj:
        try:
            ctx.obj["settings"] = load_settings(ctx.obj["config"])
        except (OSError, ValueError) as exc:
            raise click.ClickException(str(exc)) from exc
    return ctx.obj["settings"]


def _service(ctx: click.Context):
    from jitphone.service import TransformationService

    if "service" not in ctx.obj:
        ctx.obj["service"] = TransformationService(_settings(ctx))
    return ctx.obj["service"]


def _guess_dialect(path: str) -> str:
    dialect = _EXTENSION_DIALECTS.get(Path(path).suffix.lower())
    if dialect is None:
        raise click.UsageError(f"Cannot tell the dialect of '{path}'; pass --dialect")
    return dialect


def _fail(error: JITPhoneError) -> None:
    console.print(f"[red]{error.kind}:[/] {error.message}")
    raise SystemExit(1)


def _write_output(code: str, output: str | None) -> None:
    if output:
        Path(output).write_text(code)
        console.print(f"[green]Written to:[/] {output}")
    else:
        click.echo(code, nl=not code.endswith("\n"))


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", default=None, help="YAML settings file (default: $JITPHONE_CONFIG)")
@click.option("--log-level", default=None, help="Logging level (default: the log_level setting)")
@click.pass_context
def main(ctx: click.Context, config: str | None, log_level: str | None):
    """jitphone -- source dialects and engine instructions to adapted JavaScript.

    Compile Objective-C or Swift style sources, convert instruction
    listings, optimize and adapt the result for a target profile, and run
    it in a sandbox.
    """
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    _setup_logging(log_level or _settings(ctx).log_level)


# ── Compile ──────────────────────────────────────────────────────────


@main.command(name="compile")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--dialect", "-d", default=None, help="Source dialect (default: from the file extension)")
@click.option("--level", "-O", "level", default=None, type=click.IntRange(0, 3), help="Optimization level")
@click.option("--profile", "-p", default="", help="Target profile")
@click.option("--polyfills/--no-polyfills", default=True, help="Guard disallowed identifiers and add polyfills")
@click.option("--optimize-for-size", is_flag=True, help="Shrink and truncate to the profile payload limit")
@click.option("--output", "-o", default=None, help="Write the generated code to a file")
@click.option("--json", "as_json", is_flag=True, help="Print the full response as JSON")
@click.pass_context
def compile_source(ctx, source, dialect, level, profile, polyfills, optimize_for_size, output, as_json):
    """Compile SOURCE into code adapted for a target profile."""
    from jitphone.models.records import CompileRequest

    service = _service(ctx)
    request = CompileRequest(
        source=Path(source).read_text(),
        dialect=dialect or _guess_dialect(source),
        optimization_level=service.settings.default_optimization_level if level is None else level,
        target_profile=profile,
        enable_polyfills=polyfills,
        optimize_for_size=optimize_for_size,
    )
    try:
        response = service.compile(request)
    except JITPhoneError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(response.to_dict(), indent=2))
        return

    _write_output(response.generated_code, output)
    verdict = response.compatibility_verdict
    status = "[green]compatible[/]" if verdict["compatible"] else "[red]incompatible[/]"
    console.print(
        Panel(
            f"Profile: {response.metadata['target_profile']} ({status})\n"
            f"Optimizations: {', '.join(response.applied_optimizations) or 'none'}\n"
            f"Adaptations: {', '.join(response.applied_adaptations) or 'none'}\n"
            f"Size: {response.metadata['original_size']} -> {response.metadata['generated_size']}",
            title="jitphone compile",
        )
    )
    for issue in verdict["issues"]:
        console.print(f"  [red]x[/] {issue}")
    for warning in response.warnings:
        console.print(f"  [yellow]![/] {warning}")


# ── Convert ──────────────────────────────────────────────────────────


@main.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--format", "-f", "source_format", required=True, help="Instruction format tag")
@click.option("--level", "-O", "level", default=0, type=click.IntRange(0, 3), help="Optimization level")
@click.option("--adapt", is_flag=True, help="Also adapt the result for a profile")
@click.option("--profile", "-p", default="", help="Target profile (with --adapt)")
@click.option("--output", "-o", default=None, help="Write the generated code to a file")
@click.option("--json", "as_json", is_flag=True, help="Print the full response as JSON")
@click.pass_context
def convert(ctx, source, source_format, level, adapt, profile, output, as_json):
    """Convert an instruction listing in SOURCE to JavaScript."""
    from jitphone.models.records import ConvertRequest

    request = ConvertRequest(
        instructions=Path(source).read_text(),
        source_format=source_format,
        target_profile=profile,
        optimization_level=level,
        adapt=adapt,
    )
    try:
        response = _service(ctx).convert(request)
    except JITPhoneError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(response.to_dict(), indent=2))
        return

    _write_output(response.generated_code, output)
    for warning in response.warnings:
        console.print(f"  [yellow]![/] {warning}")


# ── Execute ──────────────────────────────────────────────────────────


@main.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--input", "-i", "input_json", default=None, help="JSON value passed to the code as `input`")
@click.option("--timeout", "-t", default=None, type=float, help="Wall-clock budget in seconds")
@click.pass_context
def execute(ctx, source, input_json, timeout):
    """Run the code in SOURCE in the sandbox and print its return value."""
    from jitphone.models.records import ExecuteRequest

    try:
        payload = json.loads(input_json) if input_json else None
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}", param_hint="--input")

    try:
        result = _service(ctx).execute(ExecuteRequest(code=Path(source).read_text(), input=payload, timeout=timeout))
    except JITPhoneError as e:
        _fail(e)

    for line in result.logs:
        console.print(f"[dim]log:[/] {line}")
    if result.success:
        click.echo(json.dumps(result.result))
        console.print(f"[green]ok[/] in {result.duration_ms:.1f}ms")
    else:
        console.print(f"[red]{result.error['kind']}:[/] {result.error['message']}")
        raise SystemExit(1)


# ── Analyze ──────────────────────────────────────────────────────────


@main.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--profile", "-p", default="", help="Profile to check compatibility against")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON")
@click.pass_context
def analyze(ctx, source, profile, as_json):
    """Static analysis report for the code in SOURCE."""
    from jitphone.models.records import AnalyzeRequest

    try:
        analysis = _service(ctx).analyze(AnalyzeRequest(code=Path(source).read_text(), target_profile=profile))
    except JITPhoneError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps(analysis.to_dict(), indent=2))
        return
    console.print(Panel(analysis.summary(), title=f"Analysis: {source}"))


# ── IR ───────────────────────────────────────────────────────────────


@main.command()
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.option("--dialect", "-d", default=None, help="Dialect or instruction format tag")
@click.pass_context
def ir(ctx, source, dialect):
    """Show the intermediate representation recovered from SOURCE."""
    service = _service(ctx)
    tag = dialect or _guess_dialect(source)
    text = Path(source).read_text()
    try:
        if tag in service.formats:
            functions = service.lower(text, tag)
            table = Table(title=f"Lowered functions ({len(functions)})")
            table.add_column("Function", style="cyan")
            table.add_column("Params")
            table.add_column("Instructions", justify="right")
            table.add_column("Unsupported", justify="right")
            table.add_column("Tags", style="dim")
            for func in functions:
                table.add_row(
                    func.name,
                    ", ".join(func.params),
                    str(len(func.instructions)),
                    str(func.unknown_count),
                    ", ".join(func.optimization_tags),
                )
            console.print(table)
            return
        module = service.parse(text, tag)
    except JITPhoneError as e:
        _fail(e)

    table = Table(title=f"IR module ({module.dialect.value})")
    table.add_column("Kind", style="cyan")
    table.add_column("Count", justify="right", style="green")
    for kind, count in module.summary().items():
        table.add_row(kind, str(count))
    console.print(table)
    for warning in module.warnings:
        console.print(f"  [yellow]![/] {warning}")


# ── Formats / profiles ───────────────────────────────────────────────


@main.command()
@click.pass_context
def formats(ctx):
    """List accepted dialects and instruction formats."""
    info = _service(ctx).formats_info()
    console.print(f"Dialects: {', '.join(info['dialects'])}")

    table = Table(title="Instruction formats")
    table.add_column("Tag", style="cyan")
    table.add_column("Implemented")
    table.add_column("Description")
    for fmt in info["instruction_formats"]:
        table.add_row(fmt["tag"], "yes" if fmt["implemented"] else "[dim]stub[/]", fmt["description"])
    console.print(table)


@main.command()
@click.pass_context
def profiles(ctx):
    """List target profiles."""
    table = Table(title="Target profiles")
    table.add_column("Name", style="cyan")
    table.add_column("Aliases")
    table.add_column("Harness")
    table.add_column("Max payload", justify="right")
    table.add_column("Disallowed", style="dim")
    for profile in _service(ctx).profiles.all():
        table.add_row(
            profile.name,
            ", ".join(profile.aliases),
            profile.harness,
            str(profile.max_payload_size),
            ", ".join(profile.disallowed_identifiers),
        )
    console.print(table)


if __name__ == "__main__":
    main()
