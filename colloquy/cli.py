"""Click CLI: orchestrates config loading, provider selection, conversation runs, and output."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

import click
from dotenv import load_dotenv
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from colloquy.completion import CompletionService
from colloquy.context import INITIATOR, RESPONDENT, OrchestratorContext, build_context, roster_providers
from colloquy.errors import AgentInvocationError, ConfigValidationError
from colloquy.healthcheck import run_health_checks
from colloquy.inbox import archive_file, ensure_dirs, parse_file, scan_inbox, session_input
from colloquy.models import RunResult
from colloquy.orchestrator import DIALOGUE, PANEL, ConversationOrchestrator
from colloquy.output import RunWriter, console, print_result, print_turn
from colloquy.pipelines import PIPELINES, get_pipeline, run_pipeline
from colloquy.providers.anthropic import AnthropicProvider
from colloquy.providers.base import AIProvider
from colloquy.providers.gemini import GeminiProvider
from colloquy.providers.openai_provider import OpenAIProvider
from colloquy.providers.openrouter import OpenRouterProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "openrouter": OpenRouterProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build all available providers. Returns dict keyed by model name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        model_cfg = config.models[name]
        if model_cfg.sdk not in PROVIDER_CLASSES:
            logging.warning("Provider SDK '%s' for '%s' unknown, skipping", model_cfg.sdk, name)
            continue
        try:
            providers[name] = PROVIDER_CLASSES[model_cfg.sdk](model_cfg)
        except Exception as exc:
            logging.warning("Failed to instantiate provider '%s': %s", name, exc)
    return providers


def _speaker_names(config: AppConfig) -> dict[str, str]:
    names = {p.token: p.name for panel in config.panels.values() for p in panel.participants}
    names.update({INITIATOR: "Initiator", RESPONDENT: "Respondent"})
    return names


def _required_providers(context: OrchestratorContext, pipeline: str, panel_type: str | None) -> set[str]:
    try:
        pipeline = get_pipeline(pipeline).name
    except KeyError:
        return set()
    if pipeline == DIALOGUE:
        return roster_providers(context.dialogue)
    roster = context.panels.get(panel_type or context.default_panel_type)
    return roster_providers(roster) if roster is not None else set()


def _check_providers(all_providers: dict[str, AIProvider], needed: set[str]) -> None:
    """Run health checks on the providers a run needs. Exits on any failure."""
    missing = sorted(needed - set(all_providers))
    if missing:
        console.print(
            f"[bold red]Error:[/bold red] Providers not available: {', '.join(missing)}. Check API keys in .env."
        )
        sys.exit(1)

    console.print("\n[bold]Checking providers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(
        run_health_checks({n: all_providers[n] for n in sorted(needed)})
    )

    failed_names: list[str] = []
    for name in sorted(results):
        ok, err = results[name]
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if failed_names:
        console.print(f"\n[bold red]Error:[/bold red] {len(failed_names)} provider(s) failed: {', '.join(failed_names)}")
        sys.exit(1)
    console.print()


def _build_input(
    content: str,
    meta: dict[str, Any],
    config: AppConfig,
    pipeline: str,
    subject: str | None,
    panel_type: str | None,
    interactions: int | None,
    facilitator: bool,
    summary_focus: str | None,
) -> dict[str, Any]:
    """Merge settings for one run. Precedence: CLI flag > frontmatter > config default."""
    raw = session_input(content, meta)
    overrides = {
        "discussionSubject": subject,
        "panelType": panel_type,
        "panelInteractions": interactions,
        "facilitatorEnabled": True if facilitator else None,
        "summaryFocus": summary_focus,
    }
    raw.update({k: v for k, v in overrides.items() if v is not None})

    if "panelInteractions" not in raw:
        panel = config.panels.get(raw.get("panelType") or config.defaults.panel_type)
        if pipeline == PANEL and panel is not None:
            raw["panelInteractions"] = panel.default_interactions
        else:
            raw["panelInteractions"] = config.defaults.interactions
    return raw


async def _run_single(orchestrator: ConversationOrchestrator, pipeline: str, raw: dict[str, Any]) -> RunResult:
    spec = get_pipeline(pipeline)
    topic = str(raw.get("discussionSubject", ""))
    mode = "moderated" if spec.capabilities.uses_moderator else "unmoderated"
    console.print(f"\n[bold cyan]Colloquy[/bold cyan]: {spec.name}, {mode} ({spec.description})")
    console.print(f"Subject: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(f"Running {spec.name}...", total=None)
        return await run_pipeline(orchestrator, spec.name, raw)


def _report_failure(exc: Exception) -> None:
    if isinstance(exc, ConfigValidationError):
        console.print("[bold red]Invalid configuration:[/bold red]")
        for err in exc.errors:
            console.print(f"  - {err}")
    elif isinstance(exc, AgentInvocationError):
        console.print(f"[bold red]Run failed:[/bold red] {exc}")
        if exc.result is not None:
            console.print(f"[dim]{len(exc.result.conversation)} turns completed before the failure.[/dim]")
    else:
        console.print(f"[bold red]Error:[/bold red] {exc}")


async def _run_inbox(
    config: AppConfig,
    orchestrator: ConversationOrchestrator,
    names: dict[str, str],
    inbox_dir: Path,
    archive_dir: Path,
    cli_options: dict[str, Any],
) -> None:
    """Process all .md files in the inbox folder.

    Precedence for per-file settings: CLI flag > frontmatter > config default.
    """
    ensure_dirs(inbox_dir, archive_dir)
    files = scan_inbox(inbox_dir)

    if not files:
        click.echo("No files in inbox.")
        return

    for file_path in files:
        try:
            content, meta = parse_file(file_path)
            pipeline = cli_options["pipeline"] or str(meta.get("pipeline", config.defaults.pipeline))
            options = {k: v for k, v in cli_options.items() if k != "pipeline"}
            raw = _build_input(content, meta, config, pipeline, **options)
            result = await _run_single(orchestrator, pipeline, raw)
        except Exception as exc:
            logger.error("Failed: %s -- %s", file_path.name, exc)
            _report_failure(exc)
            archive_file(file_path, archive_dir, failed=True)
            continue

        print_result(result, names)
        archived = archive_file(file_path, archive_dir)
        click.echo(f"Processed: {file_path.name} -> {result.output_dir} (archived: {archived.name})")


@click.command()
@click.argument("source_file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--subject", default=None, help="Discussion subject (default: from file frontmatter)")
@click.option("--pipeline", default=None, type=click.Choice(sorted(PIPELINES)),
              help="Which pipeline to run (default: from config)")
@click.option("--panel-type", default=None, help="Panel type for the panel pipeline, e.g. discussion, security, techreview")
@click.option("--interactions", default=None, type=int, help="Panel interactions / dialogue iterations (2-15)")
@click.option("--facilitator", is_flag=True, default=False,
              help="Enable facilitator interventions every second iteration (needs an even count)")
@click.option("--summary-focus", default=None, help="What the final summary should focus on")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--inbox", "use_inbox", is_flag=True, default=False,
              help="Process all .md files in inbox folder")
@click.option("--inbox-dir", "inbox_dir_override", default=None,
              help="Override inbox folder path (default: from config)")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    source_file: str | None,
    subject: str | None,
    pipeline: str | None,
    panel_type: str | None,
    interactions: int | None,
    facilitator: bool,
    summary_focus: str | None,
    output_path: str | None,
    verbose: bool,
    use_inbox: bool,
    inbox_dir_override: str | None,
    skip_health_check: bool,
) -> None:
    """Colloquy -- moderated multi-agent panels and facilitated dialogues.

    SOURCE_FILE is a Markdown file whose body is the source material. Its
    optional YAML frontmatter may set subject, interactions, pipeline,
    panel_type, facilitator and summary_focus.

    \b
    Examples:
      colloquy article.md --subject "What does this mean for remote work?"
      colloquy article.md --subject "Threat model" --panel-type security --interactions 6
      colloquy notes.md --subject "Tradeoffs" --pipeline dialogue --facilitator --interactions 4
      colloquy --inbox
      colloquy --inbox --inbox-dir ./my_queue
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if not use_inbox and not source_file:
        console.print("[bold red]Error:[/bold red] Provide a SOURCE_FILE argument or --inbox.")
        sys.exit(1)

    all_providers = _build_all_providers(config)
    if not all_providers:
        console.print("[bold red]Error:[/bold red] No providers available. Check API keys in .env.")
        sys.exit(1)

    names = _speaker_names(config)
    output_dir = Path(output_path) if output_path else config.defaults.output_dir
    try:
        context = build_context(
            config,
            CompletionService(all_providers),
            persist=RunWriter(output_dir, names),
            on_turn=lambda turn: print_turn(turn, names),
        )
    except ValueError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)
    orchestrator = ConversationOrchestrator(context)

    if use_inbox:
        if not skip_health_check:
            needed: set[str] = set()
            for name in PIPELINES:
                needed |= _required_providers(context, name, panel_type)
            _check_providers(all_providers, needed & set(all_providers))
        inbox_dir = Path(inbox_dir_override) if inbox_dir_override else config.inbox.dir
        asyncio.run(
            _run_inbox(
                config=config,
                orchestrator=orchestrator,
                names=names,
                inbox_dir=inbox_dir,
                archive_dir=config.inbox.archive_dir,
                cli_options={
                    "pipeline": pipeline,
                    "subject": subject,
                    "panel_type": panel_type,
                    "interactions": interactions,
                    "facilitator": facilitator,
                    "summary_focus": summary_focus,
                },
            )
        )
        return

    content, meta = parse_file(Path(source_file))
    effective_pipeline = pipeline or str(meta.get("pipeline", config.defaults.pipeline))
    raw = _build_input(
        content, meta, config, effective_pipeline, subject, panel_type, interactions, facilitator, summary_focus,
    )

    if not skip_health_check:
        _check_providers(all_providers, _required_providers(context, effective_pipeline, raw.get("panelType")))

    try:
        result = asyncio.run(_run_single(orchestrator, effective_pipeline, raw))
    except (ConfigValidationError, AgentInvocationError, KeyError) as exc:
        _report_failure(exc)
        sys.exit(1)

    print_result(result, names)
    if result.output_dir:
        console.print(f"\n[dim]Saved to: {result.output_dir}[/dim]")


if __name__ == "__main__":
    main()
