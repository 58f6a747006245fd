"""Typer CLI entrypoint for feed-crawler."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, GlobalConfig, SelectorConfig, TargetConfig, TargetGroupConfig
from .engine import ArticleRepository, Fetcher, GroupRunResult
from .errors import GroupCrawlError
from .logging_conf import (
    available_group_logs,
    configure_logging,
    group_log_file,
    group_logger,
    tail_log,
)
from .orchestrator import Orchestrator, RepositoryFactory

app = typer.Typer(
    help="feed-crawler command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
group_app = typer.Typer(
    name="group",
    help="Target group commands",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Log viewing commands",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


class GroupRunner:
    """Run configured groups against live HTTP and the configured repository."""

    def __init__(
        self,
        global_config: GlobalConfig,
        articles: ArticleRepository,
        logs_dir: Path,
        verbose: bool = False,
    ) -> None:
        self.global_config = global_config
        self.articles = articles
        self.logs_dir = logs_dir
        self.verbose = verbose

    def run(self, configs: Sequence[TargetGroupConfig]) -> dict[str, GroupRunResult | GroupCrawlError]:
        return asyncio.run(self._run(configs))

    async def _run(
        self, configs: Sequence[TargetGroupConfig]
    ) -> dict[str, GroupRunResult | GroupCrawlError]:
        async with Fetcher(self.global_config.fetch) as fetcher:
            orchestrator = Orchestrator.from_config(
                self.global_config,
                configs,
                self.articles,
                fetch=fetcher.fetch,
                group_logger_factory=lambda name: group_logger(name, self.verbose, self.logs_dir),
            )
            results: dict[str, GroupRunResult | GroupCrawlError] = {}
            for name, runner in orchestrator.group_runners().items():
                try:
                    results[name] = await runner()
                except GroupCrawlError as exc:
                    results[name] = exc
            return results


@dataclass
class AppState:
    repository: ConfigRepository
    articles: ArticleRepository
    runner: GroupRunner


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    global_config = repository.load_global_config()
    configure_logging(verbose=verbose, log_dir=repository.locator.logs_dir)
    articles = RepositoryFactory.build(global_config.storage, repository.locator.project_root)
    return AppState(
        repository=repository,
        articles=articles,
        runner=GroupRunner(
            global_config, articles, repository.locator.logs_dir, verbose=verbose
        ),
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _render_groups_table(groups: Sequence[TargetGroupConfig]) -> Table:
    table = Table(title=f"Target groups ({len(groups)})", box=box.SIMPLE_HEAD)
    table.add_column("Group", style="cyan", no_wrap=True)
    table.add_column("Targets", justify="right")
    table.add_column("Max concurrency", justify="right", style="magenta")
    table.add_column("Listing URLs", style="green", overflow="fold")
    for group in groups:
        table.add_row(
            group.name,
            str(len(group.targets)),
            str(group.max_concurrency) if group.max_concurrency else "default",
            ", ".join(target.url for target in group.targets),
        )
    return table


def _render_results_table(results: dict[str, GroupRunResult | GroupCrawlError]) -> Table:
    table = Table(title="Run results", box=box.SIMPLE_HEAD, show_footer=True)
    table.add_column("Group", style="cyan", no_wrap=True, footer="Total")
    table.add_column("Target", overflow="fold")
    table.add_column("Saved", justify="right", style="green")
    table.add_column("Error", style="red", overflow="fold")
    total = 0
    for group_name, outcome in results.items():
        failures = outcome.failures
        if isinstance(outcome, GroupRunResult):
            total += outcome.total_saved
            for descriptor, saved in outcome.saved_by_target:
                table.add_row(group_name, descriptor["name"], str(saved), "")
        for failure in failures:
            table.add_row(group_name, failure.target["name"], "-", failure.error)
    table.columns[2].footer = str(total)
    return table


def _has_failures(results: dict[str, GroupRunResult | GroupCrawlError]) -> bool:
    return any(outcome.failures for outcome in results.values())


app.add_typer(group_app, name="group", help="Manage and run target groups")
app.add_typer(log_app, name="log", help="Inspect log files")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True)
) -> None:
    ctx.obj = build_state(verbose)


@group_app.command("list", help="Show configured target groups.")
def group_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    groups = state.repository.list_groups()
    if not groups:
        console.print(
            f"No groups configured. Add YAML files under {state.repository.locator.groups_dir}.",
            style="yellow",
        )
        raise typer.Exit(code=0)
    console.print(_render_groups_table(groups))


def _parse_fields(fields: Sequence[str]) -> dict[str, str]:
    pattern: dict[str, str] = {}
    for raw in fields:
        key, sep, selector = raw.partition("=")
        if not sep or not key.strip() or not selector.strip():
            raise typer.BadParameter(f"expected FIELD=SELECTOR, got {raw!r}", param_hint="--field")
        pattern[key.strip()] = selector.strip()
    return pattern


@group_app.command("add", help="Add a selector-based target to a group, creating the group if needed.")
def group_add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Group name."),
    url: str = typer.Option(..., "--url", help="Listing page URL."),
    entry: str = typer.Option(..., "--entry", help="CSS selector for detail links on the listing."),
    fields: List[str] = typer.Option(
        ..., "--field", help="Detail field as FIELD=SELECTOR; repeat for more fields."
    ),
    title: Optional[str] = typer.Option(None, "--title", help="Title selector relative to each link."),
    target_name: Optional[str] = typer.Option(None, "--target-name", help="Display name of the target."),
    max_concurrency: Optional[int] = typer.Option(
        None, "--max-concurrency", min=1, help="Per-group concurrency bound."
    ),
) -> None:
    state = _get_state(ctx)
    try:
        existing = state.repository.load_group(name)
    except FileNotFoundError:
        existing = None
    try:
        target = TargetConfig(
            name=target_name,
            url=url,
            selectors=SelectorConfig(
                entry_pattern=entry, title_pattern=title, detail_pattern=_parse_fields(fields)
            ),
        )
        if existing is None:
            config = TargetGroupConfig(name=name, max_concurrency=max_concurrency, targets=[target])
        else:
            if any(item.url == url for item in existing.targets):
                console.print(f"Group `{name}` already has a target for {url}.", style="red")
                raise typer.Exit(code=1)
            config = existing.model_copy(
                update={
                    "targets": [*existing.targets, target],
                    "max_concurrency": max_concurrency or existing.max_concurrency,
                }
            )
    except ValidationError as exc:
        console.print(f"Invalid target configuration: {exc}", style="red")
        raise typer.Exit(code=1)
    path = state.repository.save_group(config)
    console.print(
        f"Group `{config.name}` now has {len(config.targets)} target(s); saved to {path}.",
        style="green",
    )


@group_app.command("remove", help="Delete a group configuration.")
def group_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Group name."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    path = state.repository.group_path(name)
    if not path.exists():
        console.print(f"Group `{name}` not found.", style="red")
        raise typer.Exit(code=1)
    if not yes and not typer.confirm(f"Delete group `{name}`?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    state.repository.delete_group(name)
    console.print(f"Group `{name}` deleted.", style="green")


@group_app.command("run", help="Crawl one group, or every group with --all.")
def group_run(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Group name."),
    run_all: bool = typer.Option(False, "--all", help="Run every configured group.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    if run_all:
        configs = state.repository.list_groups()
    elif name:
        try:
            configs = [state.repository.load_group(name)]
        except FileNotFoundError as exc:
            console.print(str(exc), style="red")
            raise typer.Exit(code=1)
    else:
        console.print("Pass a group name or --all.", style="red")
        raise typer.Exit(code=1)
    if not configs:
        console.print("No groups configured.", style="yellow")
        raise typer.Exit(code=0)

    results = state.runner.run(configs)
    console.print(_render_results_table(results))
    if _has_failures(results):
        console.print("Some targets failed after exhausting retries.", style="red")
        raise typer.Exit(code=1)


@group_app.command("history", help="Show recently saved articles for a group.")
def group_history(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Group name."),
    limit: int = typer.Option(20, "--limit", min=1, help="Number of rows to show."),
) -> None:
    state = _get_state(ctx)
    rows = state.articles.recent(name, limit=limit)
    if not rows:
        console.print(f"No saved articles for {name}.", style="yellow")
        raise typer.Exit(code=0)
    table = Table(title=f"{name} · latest {len(rows)}", box=box.SIMPLE_HEAD)
    table.add_column("Detail URL", style="cyan", overflow="fold")
    table.add_column("Saved at", style="green", no_wrap=True)
    for url, saved_at in rows:
        table.add_row(url, str(saved_at))
    console.print(table)


@log_app.command("list", help="List available group log files.")
def log_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    logs = list(available_group_logs(state.repository.locator.logs_dir))
    if not logs:
        console.print("No group logs yet.", style="yellow")
        raise typer.Exit(code=0)
    for path in logs:
        console.print(path.stem)


@log_app.command("show", help="Show the tail of a group log.")
def log_show(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Group name."),
    lines: int = typer.Option(50, "--lines", min=1, help="Number of lines to show."),
) -> None:
    state = _get_state(ctx)
    path = group_log_file(name, state.repository.locator.logs_dir)
    content = tail_log(path, lines)
    if not content:
        console.print(f"No log content for {name}.", style="yellow")
        raise typer.Exit(code=0)
    console.print("".join(content), end="", markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
