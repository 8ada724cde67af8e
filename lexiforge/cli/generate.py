"""Lexiforge command line.

Commands:
- validate: Run the four validation passes over a language file
- surface: Show the allophonic surface form of a phonemic string
- inflect: Print the paradigm table of one lexicon entry
- coverage: Report core vocabulary coverage
- generate: Run the autonomous pipeline and write the language as JSON
"""

import asyncio
import sys
from pathlib import Path

import click
import orjson
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from lexiforge.config import get_settings
from lexiforge.core import (
    CompleteEvent,
    ErrorEvent,
    LanguageDefinition,
    OperationCompleteEvent,
    PipelineRequest,
    ProgressEvent,
)
from lexiforge.errors import LexiforgeError
from lexiforge.interop import ModelClientConfig, OpenRouterClient
from lexiforge.observ import get_logger, timer
from lexiforge.services import GatedExecutor, PipelineConfig, PipelineOrchestrator, validate
from lexiforge.services.lexicon import generate_coverage_report
from lexiforge.services.morphology import generate_paradigm_table
from lexiforge.services.phonology import surface_form
from lexiforge.storage import OperationCache, RedisCacheBackend, build_cache_backend

logger = get_logger(__name__)
console = Console()


def load_language(path: str) -> LanguageDefinition:
    return LanguageDefinition.model_validate(orjson.loads(Path(path).read_bytes()))


@click.group()
def cli():
    """Lexiforge constructed language toolkit"""
    pass


@cli.command("validate")
@click.argument("language_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--warnings/--no-warnings", default=True, help="Also list warnings")
def validate_command(language_file, warnings):
    """Validate a language definition; exits 1 if it has errors."""
    language = load_language(language_file)
    result = validate(language)

    issues = list(result.errors) + (list(result.warnings) if warnings else [])
    if issues:
        table = Table(title=f"{language.meta.name}: {len(result.errors)} errors, {len(result.warnings)} warnings")
        table.add_column("Severity")
        table.add_column("Rule")
        table.add_column("Module")
        table.add_column("Ref")
        table.add_column("Message")
        for issue in issues:
            style = "red" if issue.is_error else "yellow"
            table.add_row(
                f"[{style}]{issue.severity.value}[/{style}]",
                issue.rule_id,
                issue.module.value,
                issue.entity_ref or "",
                escape(issue.message)
            )
        console.print(table)

    if result.valid:
        console.print(f"[green]✓ {language.meta.name} is valid[/green] ({result.duration_ms:.1f} ms)")
    else:
        console.print(f"[red]✗ {language.meta.name} is invalid[/red]")
        sys.exit(1)


@cli.command()
@click.argument("language_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("form")
def surface(language_file, form):
    """Show the surface realisation of a phonemic FORM."""
    language = load_language(language_file)
    try:
        console.print(f"/{escape(form.strip('/'))}/ → {escape(surface_form(form, language.phonology))}")
    except LexiforgeError as e:
        console.print(f"[red]{escape(e.message)}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("language_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("lexeme_id")
def inflect(language_file, lexeme_id):
    """Print the full paradigm table of one lexicon entry."""
    language = load_language(language_file)
    entry = next((e for e in language.lexicon if e.id == lexeme_id), None)
    if entry is None:
        raise click.ClickException(f"No lexicon entry with id {lexeme_id}")

    paradigm = generate_paradigm_table(entry, language.morphology, language.phonology)
    table = Table(title=f"{entry.orthographic_form} ({paradigm.pos})")
    table.add_column("Cell")
    table.add_column("Orthographic")
    table.add_column("Phonological")
    for row in paradigm.rows:
        table.add_row(row.label, row.orthographic_form, row.phonological_form)
    console.print(table)


@cli.command()
@click.argument("language_file", type=click.Path(exists=True, dir_okay=False))
def coverage(language_file):
    """Report how much of the core vocabulary the lexicon covers."""
    language = load_language(language_file)
    report = generate_coverage_report(language.lexicon)
    console.print(
        f"[bold]{report.total_entries} entries[/bold], core slots "
        f"{report.core_slots_filled}/{report.core_slots_total} ({report.coverage_percent}%)"
    )
    if report.missing_slots:
        console.print(f"Missing: {', '.join(report.missing_slots[:30])}"
                      + (" ..." if len(report.missing_slots) > 30 else ""))


@cli.command()
@click.option("--id", "language_id", required=True, help="Language identifier")
@click.option("--name", required=True, help="Language name")
@click.option("--world", default=None, help="World-building context")
@click.option("--tag", "tags", multiple=True, help="Style tag (repeatable)")
@click.option("--naturalism", default=0.7, type=click.FloatRange(0, 1), help="Naturalism score")
@click.option("--complexity", default=0.5, type=click.FloatRange(0, 1), help="Morphological complexity")
@click.option("--output", "-o", default=None, type=click.Path(dir_okay=False), help="Output JSON file")
def generate(language_id, name, world, tags, naturalism, complexity, output):
    """Run the autonomous generation pipeline."""
    settings = get_settings()
    if not settings.model_api_key:
        raise click.ClickException("MODEL_API_KEY is not set")

    request = PipelineRequest(
        language_id=language_id,
        name=name,
        world=world,
        tags=list(tags),
        naturalism_score=naturalism,
        complexity=complexity
    )

    async def _generate():
        backend = build_cache_backend(settings)
        if isinstance(backend, RedisCacheBackend):
            await backend.connect()
        cache = OperationCache.from_settings(settings, backend)
        outcome = (None, False)
        try:
            async with OpenRouterClient(ModelClientConfig.from_settings(settings)) as client:
                executor = GatedExecutor(client, cache, max_attempts=settings.max_attempts)
                orchestrator = PipelineOrchestrator(executor, PipelineConfig.from_settings(settings))
                async for event in orchestrator.run(request):
                    if isinstance(event, ProgressEvent):
                        console.print(f"[cyan][{event.step}/{event.total_steps}][/cyan] {event.step_name}")
                    elif isinstance(event, OperationCompleteEvent):
                        result = event.result
                        source = "cache" if result.from_cache else f"attempt {result.attempt}"
                        console.print(f"  ✓ {result.operation.value} ({source}, {result.duration_ms:.0f} ms)")
                    elif isinstance(event, ErrorEvent):
                        console.print(f"[red]✗ {event.step}: {escape(event.message)}[/red]")
                        outcome = (event.partial, False)
                    elif isinstance(event, CompleteEvent):
                        outcome = (event.language, True)
                console.print(f"Token usage: {client.usage_summary()}")
        finally:
            if isinstance(backend, RedisCacheBackend):
                await backend.close()
        return outcome

    with timer(logger, "cli_generate", language_id=language_id):
        language, ok = asyncio.run(_generate())

    if language is not None:
        payload = orjson.dumps(language.model_dump(mode="json", by_alias=True), option=orjson.OPT_INDENT_2)
        if output:
            Path(output).write_bytes(payload)
            console.print(f"Wrote {output}")
        else:
            click.echo(payload.decode())
    if not ok:
        sys.exit(1)


if __name__ == "__main__":
    cli()
