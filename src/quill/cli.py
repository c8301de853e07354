"""Quill command line interface.

Usage:
    quill serve                         Start the HTTP API
    quill analyze FILE                  Structure, quality and suggestions for a post
    quill modify FILE -i "..."          Run the LLM modify pipeline
    quill fallback FILE -i "..."        Rule-based modifications only (no LLM)
    quill restructure FILE -t blog      Re-arrange a post under a template
    quill config show|path|init         Manage configuration
    quill providers                     List LLM providers and key status
    quill keys set|delete PROVIDER      Manage API keys in the system keyring

FILE is a JSON list of blocks, or Markdown/plain text.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.table import Table
from typer import Argument, Option

from . import __version__
from .blocks import Block, blocks_to_markdown, blocks_to_text, string_to_blocks

app = typer.Typer(
    name="quill",
    help="Quill - AI-assisted editing for block-structured posts",
    add_completion=False,
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")
keys_app = typer.Typer(help="API keys in the system keyring")
app.add_typer(keys_app, name="keys")

console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"Quill version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        Option("--version", "-V", callback=version_callback, is_eager=True, help="Show version"),
    ] = False,
    verbose: Annotated[bool, Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Quill - AI-assisted editing for block-structured posts."""
    from .config import get_config
    from .logging_setup import configure_logging

    if verbose:
        get_config().general.log_level = "DEBUG"
    configure_logging()


def load_blocks(path: Path) -> list[Block]:
    """Read a post from disk: a JSON block list, or Markdown/plain text."""
    if not path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            console.print(f"[red]Invalid JSON in {path}: {e}[/red]")
            raise typer.Exit(1) from e
        if isinstance(data, dict):
            data = data.get("content") or data.get("blocks") or []
        if not isinstance(data, list):
            console.print(f"[red]{path} must contain a list of blocks[/red]")
            raise typer.Exit(1)
        return [b for b in data if isinstance(b, dict)]
    return string_to_blocks(text)


def _print_modifications(modifications: list[Any], explanation: str) -> None:
    table = Table(title="Modifications", show_header=True)
    table.add_column("#", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Details")
    for i, mod in enumerate(modifications, start=1):
        data = mod.to_dict()
        details = data.get("title") or data.get("content") or ""
        if len(details) > 80:
            details = details[:77] + "..."
        location = data.get("target") or data.get("paragraph_index") or data.get("position")
        if location is not None:
            details = f"[dim]@{location}[/dim] {details}"
        table.add_row(str(i), data["type"], details)
    console.print(table)
    if explanation:
        console.print(f"\n[bold]Explanation:[/bold] {explanation}")


# =============================================================================
# Server
# =============================================================================


@app.command()
def serve(
    host: Annotated[Optional[str], Option("--host", "-H", help="Bind address")] = None,
    port: Annotated[Optional[int], Option("--port", "-p", help="HTTP port")] = None,
) -> None:
    """Start the HTTP API."""
    import uvicorn

    from .config import get_config

    server = get_config().server
    host = host or server.host
    port = port or server.port
    console.print(f"[cyan]Starting Quill API on {host}:{port}...[/cyan]")
    uvicorn.run("quill.app:app", host=host, port=port, reload=server.reload, log_level="info")


# =============================================================================
# Document Commands
# =============================================================================


@app.command()
def analyze(
    file: Annotated[Path, Argument(help="Post file (JSON blocks or Markdown)")],
    title: Annotated[str, Option("--title", help="Post title, used for SEO")] = "",
    json_output: Annotated[bool, Option("--json", "-j", help="JSON output")] = False,
) -> None:
    """Show structure, quality score and writing suggestions."""
    from .analyzer import DocumentAnalyzer
    from .quality import QualityAnalyzer
    from .suggestions import SuggestionEngine
    from .tools import analyze_readability, check_seo

    blocks = load_blocks(file)
    structure = DocumentAnalyzer().analyze(blocks)
    quality = QualityAnalyzer().analyze(blocks, title)
    suggestions = SuggestionEngine().analyze(blocks)
    seo = check_seo(blocks, title)
    readability = analyze_readability(blocks_to_text(blocks))

    if json_output:
        console.print_json(
            json.dumps(
                {
                    "structure": structure.to_dict(),
                    "quality": quality.to_dict(),
                    "suggestions": [s.to_dict() for s in suggestions],
                    "seo": seo.to_dict(),
                    "readability": readability.to_dict(),
                },
                ensure_ascii=False,
            )
        )
        return

    stats = structure.stats
    table = Table(title=f"Analysis: {file.name}", show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Words", str(stats.total_words))
    table.add_row("Paragraphs", str(stats.total_paragraphs))
    table.add_row("Headings", str(stats.total_headings))
    table.add_row("Reading time", f"{stats.reading_time_minutes} min")
    table.add_row(
        "Quality",
        f"{quality.overall}/100 (structure {quality.structure.score}, "
        f"content {quality.content.score}, readability {quality.readability.score})",
    )
    table.add_row("SEO", f"{seo.overall_score}/10")
    table.add_row("Readability", f"{readability.overall_score}/10 ({readability.grade})")
    console.print(table)

    issues = quality.structure.issues + quality.content.issues + quality.readability.issues
    if issues:
        console.print("\n[bold]Issues[/bold]")
        for issue in issues:
            console.print(f"  [yellow]•[/yellow] {issue}")
    if suggestions:
        console.print("\n[bold]Suggestions[/bold]")
        colors = {"high": "red", "medium": "yellow", "low": "dim"}
        for s in suggestions:
            console.print(f"  [{colors[s.severity]}]{s.severity:<6}[/{colors[s.severity]}] {s.message}")


@app.command()
def modify(
    file: Annotated[Path, Argument(help="Post file (JSON blocks or Markdown)")],
    instruction: Annotated[str, Option("--instruction", "-i", help="What to change")],
    title: Annotated[str, Option("--title", help="Post title")] = "Untitled",
    provider: Annotated[Optional[str], Option("--provider", help="LLM provider override")] = None,
    model: Annotated[Optional[str], Option("--model", "-m", help="Model override")] = None,
    stories: Annotated[bool, Option("--stories", help="Use the stories variant")] = False,
    json_output: Annotated[bool, Option("--json", "-j", help="JSON output")] = False,
) -> None:
    """Ask the LLM for modifications (falls back to rules on failure)."""
    from .config import get_config
    from .errors import ValidationError
    from .modify import ModifyPipeline, ModifyRequest
    from .providers import get_provider
    from .providers.base import LLMError
    from .search import TavilyClient

    blocks = load_blocks(file)
    llm = get_config().llm
    try:
        llm_provider = get_provider(provider, model=model)
    except LLMError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    pipeline = ModifyPipeline(
        llm_provider, TavilyClient(), timeout_seconds=llm.timeout, temperature=llm.temperature
    )
    try:
        with console.status("[cyan]Thinking...[/cyan]"):
            result = pipeline.run(
                ModifyRequest(
                    post_id=file.stem,
                    instruction=instruction,
                    title=title,
                    content=blocks,
                    variant="stories" if stories else "blog",
                )
            )
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2) from e

    if json_output:
        console.print_json(json.dumps(result.to_dict(), ensure_ascii=False))
        return
    if result.used_fallback:
        console.print("[yellow]LLM output unusable; rule-based modifications shown[/yellow]")
    _print_modifications(result.modifications, result.explanation)


@app.command()
def fallback(
    file: Annotated[Path, Argument(help="Post file (JSON blocks or Markdown)")],
    instruction: Annotated[str, Option("--instruction", "-i", help="What to change")],
    stories: Annotated[bool, Option("--stories", help="Use the stories variant")] = False,
    apply: Annotated[bool, Option("--apply", help="Print the resulting document")] = False,
    diff: Annotated[bool, Option("--diff", help="Print a unified diff of the result")] = False,
) -> None:
    """Rule-based modifications only; no LLM needed."""
    from .apply import apply_modifications
    from .diff import render_unified
    from .fallback import generate_default_modifications
    from .language import detect_language

    blocks = load_blocks(file)
    modifications, explanation = generate_default_modifications(
        instruction, detect_language(instruction), variant="stories" if stories else "blog"
    )
    _print_modifications(modifications, explanation)
    if not (apply or diff):
        return
    result = apply_modifications(blocks, file.stem, modifications, highlight=False)
    if apply:
        console.print(f"\n[bold]# {result.title}[/bold]\n")
        console.print(blocks_to_markdown(result.blocks), markup=False)
    if diff:
        console.print()
        console.print(render_unified(blocks, result.blocks, from_label=file.name), markup=False)


@app.command()
def restructure(
    file: Annotated[Path, Argument(help="Post file (JSON blocks or Markdown)")],
    template: Annotated[str, Option("--template", "-t", help="academic, blog, tutorial or story")],
) -> None:
    """Re-arrange paragraphs under a template's headings."""
    from .restructure import TEMPLATES, RestructuringEngine

    if template not in TEMPLATES:
        console.print(f"[red]Unknown template: {template}. Expected one of {', '.join(TEMPLATES)}[/red]")
        raise typer.Exit(2)
    blocks = RestructuringEngine().restructure(load_blocks(file), template)
    console.print(blocks_to_markdown(blocks), markup=False)


# =============================================================================
# Config Commands
# =============================================================================


@config_app.command("show")
def config_show(
    json_output: Annotated[bool, Option("--json", "-j", help="JSON output")] = False,
) -> None:
    """Show the effective configuration."""
    from .config import get_config

    data = get_config().to_dict()
    if json_output:
        console.print_json(json.dumps(data, default=str))
        return

    table = Table(title="Quill Configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for section, values in data.items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value) if value not in (None, "") else "[dim]not set[/dim]")
    console.print(table)


@config_app.command("path")
def config_path() -> None:
    """Show the user configuration file path."""
    from .config import user_config_file

    console.print(str(user_config_file()))


@config_app.command("init")
def config_init(
    force: Annotated[bool, Option("--force", help="Overwrite an existing file")] = False,
) -> None:
    """Write a default configuration file."""
    from .config import user_config_file, write_default_config

    path = user_config_file()
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path} (use --force to overwrite)[/yellow]")
        raise typer.Exit(1)
    write_default_config(path)
    console.print(f"[green]Wrote default config to {path}[/green]")


@app.command()
def providers() -> None:
    """List LLM providers and whether an API key is available."""
    from .config import get_config
    from .providers import PROVIDER_NAMES
    from .providers.secrets import has_api_key

    current = get_config().llm.provider
    table = Table(title="LLM Providers", show_header=True)
    table.add_column("Provider", style="cyan")
    table.add_column("API key")
    table.add_column("Active")
    for name in PROVIDER_NAMES:
        key = "[dim]not needed[/dim]" if name == "ollama" else ("✓" if has_api_key(name) else "✗")
        table.add_row(name, key, "●" if name == current else "")
    console.print(table)


@keys_app.command("set")
def keys_set(
    provider: Annotated[str, Argument(help="Provider name, e.g. anthropic or tavily")],
) -> None:
    """Store an API key in the system keyring."""
    from .providers.secrets import ENV_VARS, store_api_key

    if provider not in ENV_VARS:
        console.print(f"[red]Unknown provider: {provider}. Expected one of {', '.join(ENV_VARS)}[/red]")
        raise typer.Exit(2)
    api_key = typer.prompt(f"{provider} API key", hide_input=True)
    try:
        store_api_key(provider, api_key.strip())
    except RuntimeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    console.print(f"[green]Stored API key for {provider}[/green]")


@keys_app.command("delete")
def keys_delete(
    provider: Annotated[str, Argument(help="Provider name")],
) -> None:
    """Remove an API key from the system keyring."""
    from .providers.secrets import delete_api_key

    if delete_api_key(provider):
        console.print(f"[green]Deleted API key for {provider}[/green]")
    else:
        console.print(f"[yellow]No stored API key for {provider}[/yellow]")


def main_cli() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main_cli()
