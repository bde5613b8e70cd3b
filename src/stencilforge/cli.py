"""
stencilforge.cli - Command Line Interface
=========================================

Command-line interface for stencilforge, built with Typer and Rich.

Architecture
------------
::

    app (main entry point)
    ├── generate     - Render a template tree into an output directory
    ├── list         - Show the templates under a template root
    ├── render       - Print one rendered template
    ├── helpers      - Show the available template helpers
    └── init-config  - Write a commented stencilforge.toml

Usage Examples
--------------
Generate with inline variables:
    $ stencilforge generate templates/ out/ --var name=billing --var features.auth=true

Generate from a config file and a context file:
    $ stencilforge generate --config stencilforge.toml --context context.yaml

Ask what to do for every existing file:
    $ stencilforge generate templates/ out/ --interactive
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import questionary
import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stencilforge import __version__
from stencilforge.context import load_context_file, parse_assignment, set_path
from stencilforge.engine import Engine
from stencilforge.errors import FailFastError, StencilError
from stencilforge.hooks import GenerationHooks, HookEvent
from stencilforge.logger import console as err_console
from stencilforge.logger import set_verbosity
from stencilforge.models import ConflictResolution, GenerationConfig, GenerationResult, Summary
from stencilforge.pipeline import GenerationPipeline


# =============================================================================
# CLI Application Setup
# =============================================================================

app = typer.Typer(
    name="stencilforge",
    help="Template-driven code generation with conflict handling and rollback.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

console = Console()

CONFIG_FILENAME = "stencilforge.toml"


def version_callback(value: bool) -> None:
    if value:
        console.print(Panel(
            f"[bold green]stencilforge[/] version [cyan]{__version__}[/]\n\n"
            f"[dim]Template-driven code generator[/]",
            border_style="green",
        ))
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    [bold]stencilforge[/] - Render template trees into projects.

    [bold]Quick Start:[/]

        stencilforge init-config
        stencilforge generate templates/ out/ --var name=app
    """


# =============================================================================
# Shared Helpers
# =============================================================================

def build_variables(context_file: Path | None, assignments: list[str] | None) -> dict[str, Any]:
    """
    Merge a context file with ``--var key.path=value`` assignments.

    Assignments win over values from the file.
    """
    variables: dict[str, Any] = {}
    if context_file is not None:
        variables = load_context_file(context_file)
    for assignment in assignments or []:
        key, value = parse_assignment(assignment)
        set_path(variables, key, value)
    return variables


def prompt_conflict(path: Path, context: Any) -> ConflictResolution:
    """Ask the user how to handle an existing destination."""
    answer = questionary.select(
        f"{path} already exists. What should happen?",
        choices=[
            questionary.Choice("Skip (keep the existing file)", value=ConflictResolution.SKIP),
            questionary.Choice("Overwrite", value=ConflictResolution.OVERWRITE),
            questionary.Choice("Write next to it under a new name", value=ConflictResolution.RENAME),
        ],
        default=ConflictResolution.SKIP,
    ).ask()
    # Ctrl-C returns None; keep the existing file
    return answer if answer is not None else ConflictResolution.SKIP


def _status(result: GenerationResult) -> str:
    if not result.success:
        return "[red]failed[/]"
    if result.skipped:
        return "[yellow]skipped[/]"
    return "[green]written[/]"


def print_results(results: list[GenerationResult], output_root: Path) -> None:
    table = Table(title="Generated Files", show_header=True)
    table.add_column("Status", width=8)
    table.add_column("Template", style="cyan")
    table.add_column("Destination", style="green")
    table.add_column("Notes", style="dim")

    for result in results:
        try:
            destination = str(result.file_path.relative_to(output_root.resolve()))
        except ValueError:
            destination = str(result.file_path)
        notes = [result.error] if result.error else []
        notes.extend(result.warnings)
        if result.backup_path is not None:
            notes.append(f"backup: {result.backup_path.name}")
        table.add_row(_status(result), result.template_id, destination, "\n".join(notes))

    console.print(table)


def print_summary(summary: Summary) -> None:
    style = "green" if summary.success else "red"
    console.print(Panel(
        f"[bold]Generated:[/] {summary.generated}   "
        f"[bold]Skipped:[/] {summary.skipped}   "
        f"[bold]Failed:[/] {summary.failed}   "
        f"[bold]Warnings:[/] {len(summary.warnings)}",
        title=f"[bold {style}]Summary[/]",
        border_style=style,
    ))


# =============================================================================
# Generate Command
# =============================================================================

@app.command()
def generate(
    template_root: Annotated[
        Path | None,
        typer.Argument(help="Directory containing templates"),
    ] = None,
    output_root: Annotated[
        Path | None,
        typer.Argument(help="Directory to write generated files into"),
    ] = None,
    var: Annotated[
        list[str] | None,
        typer.Option("--var", help="Context variable as key.path=value (repeatable)"),
    ] = None,
    context_file: Annotated[
        Path | None,
        typer.Option("--context", "-c", help="JSON, TOML or YAML file with context variables"),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help=f"Settings file (usually {CONFIG_FILENAME})"),
    ] = None,
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", help="Overwrite existing files"),
    ] = False,
    no_backup: Annotated[
        bool,
        typer.Option("--no-backup", help="Don't back up files before overwriting"),
    ] = False,
    no_validate: Annotated[
        bool,
        typer.Option("--no-validate", help="Skip post-write validation"),
    ] = False,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Fail files that leave directives unresolved"),
    ] = False,
    fail_fast: Annotated[
        bool,
        typer.Option("--fail-fast", help="Stop at the first failed file"),
    ] = False,
    interactive: Annotated[
        bool,
        typer.Option("--interactive", "-i", help="Ask what to do with existing files"),
    ] = False,
    rollback_on_failure: Annotated[
        bool,
        typer.Option("--rollback-on-failure", help="Delete generated files if any file fails"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Show debug logging"),
    ] = False,
) -> None:
    """
    Render every template under TEMPLATE_ROOT into OUTPUT_ROOT.

    Existing files are skipped unless --overwrite or --interactive is given.
    """
    set_verbosity(verbose)

    try:
        if config_file is not None:
            config = GenerationConfig.from_toml(config_file)
            updates: dict[str, Any] = {}
            if template_root is not None:
                updates["template_root"] = template_root
            if output_root is not None:
                updates["output_root"] = output_root
            config = config.model_copy(update=updates)
        elif template_root is None or output_root is None:
            rprint("[red]Error:[/] TEMPLATE_ROOT and OUTPUT_ROOT are required without --config")
            raise typer.Exit(1)
        else:
            config = GenerationConfig(template_root=template_root, output_root=output_root)

        flags: dict[str, Any] = {}
        if overwrite:
            flags["overwrite"] = True
        if no_backup:
            flags["backup"] = False
        if no_validate:
            flags["validate_output"] = False
        if strict:
            flags["strict"] = True
        if fail_fast:
            flags["fail_fast"] = True
        config = config.model_copy(update=flags)

        variables = build_variables(context_file, var)
    except (OSError, ValueError) as e:
        rprint(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    hooks = GenerationHooks()
    if interactive:
        hooks.register(HookEvent.ON_CONFLICT, prompt_conflict)

    pipeline = GenerationPipeline(config, hooks=hooks)
    console.print(Panel(
        f"[bold blue]Generating from:[/] [green]{config.template_root}[/]\n"
        f"[dim]Output: {config.output_root}[/]",
        title=f"[bold]{config.name}[/]",
        border_style="blue",
    ))

    try:
        summary = pipeline.run(variables)
    except FailFastError as e:
        print_results(e.results, config.output_root)
        rprint(f"[red]Error:[/] {e}")
        if rollback_on_failure:
            removed = pipeline.cleanup()
            rprint(f"[dim]Rolled back {len(removed)} generated files.[/]")
        raise typer.Exit(1)
    except StencilError as e:
        rprint(f"[red]Error:[/] {e}")
        if rollback_on_failure:
            removed = pipeline.cleanup()
            rprint(f"[dim]Rolled back {len(removed)} generated files.[/]")
        raise typer.Exit(1)

    print_results(summary.results, config.output_root)
    print_summary(summary)

    if not summary.success:
        if rollback_on_failure:
            removed = pipeline.cleanup()
            rprint(f"[dim]Rolled back {len(removed)} generated files.[/]")
        raise typer.Exit(1)


# =============================================================================
# List Command
# =============================================================================

@app.command("list")
def list_templates(
    template_root: Annotated[
        Path,
        typer.Argument(help="Directory containing templates"),
    ],
) -> None:
    """List templates, their output names and required context keys."""
    engine = Engine(GenerationConfig(template_root=template_root, output_root=Path(".")))

    try:
        template_ids = engine.store.list_all()
        rows = []
        for template_id in template_ids:
            template = engine.store.load(template_id)
            rows.append((
                template_id,
                engine.paths.strip_suffix(Path(template_id).name),
                "template" if template.is_template else "static",
                ", ".join(template.metadata.required_keys) or "-",
                template.metadata.description,
            ))
    except StencilError as e:
        rprint(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    table = Table(title=f"Templates in {template_root}", show_header=True)
    table.add_column("Template", style="cyan")
    table.add_column("Output Name", style="green")
    table.add_column("Kind", style="dim", width=8)
    table.add_column("Required Keys")
    table.add_column("Description", style="dim")
    for row in rows:
        table.add_row(*row)

    console.print(table)
    console.print(f"[dim]{len(rows)} files[/]")


# =============================================================================
# Render Command
# =============================================================================

@app.command()
def render(
    template_root: Annotated[
        Path,
        typer.Argument(help="Directory containing templates"),
    ],
    template_id: Annotated[
        str,
        typer.Argument(help="Template path relative to TEMPLATE_ROOT"),
    ],
    var: Annotated[
        list[str] | None,
        typer.Option("--var", help="Context variable as key.path=value (repeatable)"),
    ] = None,
    context_file: Annotated[
        Path | None,
        typer.Option("--context", "-c", help="JSON, TOML or YAML file with context variables"),
    ] = None,
) -> None:
    """Print one rendered template to stdout. Warnings go to stderr."""
    try:
        variables = build_variables(context_file, var)
        engine = Engine(GenerationConfig(template_root=template_root, output_root=Path(".")))
        engine.store.ensure_root()
        result = engine.render(template_id, variables)
    except (StencilError, OSError, ValueError) as e:
        rprint(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    typer.echo(result.text, nl=False)
    for warning in result.warnings:
        err_console.print(f"[yellow]⚠[/] {warning}", markup=True, highlight=False)


# =============================================================================
# Helpers Command
# =============================================================================

@app.command()
def helpers() -> None:
    """List the helpers available to templates."""
    engine = Engine(GenerationConfig(template_root=Path("."), output_root=Path(".")))

    table = Table(title="Template Helpers", show_header=True)
    table.add_column("Helper", style="cyan")
    table.add_column("Source", style="dim")
    table.add_column("Description")
    for name in engine.helpers.names():
        fn = engine.helpers.lookup(name)
        doc = (fn.__doc__ or "").strip().splitlines()
        source = "built-in" if engine.helpers.is_builtin(name) else "custom"
        table.add_row(name, source, doc[0] if doc else "")

    console.print(table)


# =============================================================================
# Init Config Command
# =============================================================================

@app.command("init-config")
def init_config(
    path: Annotated[
        Path,
        typer.Argument(help="Where to write the settings file"),
    ] = Path(CONFIG_FILENAME),
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Replace an existing file"),
    ] = False,
) -> None:
    """Write a commented settings file with the default values."""
    if path.exists() and not force:
        rprint(f"[red]Error:[/] {path} already exists (use --force to replace it)")
        raise typer.Exit(1)

    config = GenerationConfig(template_root=Path("templates"), output_root=Path("generated"))
    config.save_toml(path)
    rprint(f"[green]✓[/] Wrote {path}")


if __name__ == "__main__":
    app()
