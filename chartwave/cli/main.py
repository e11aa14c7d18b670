"""Click command group for chartwave."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import replace

import click

from chartwave.app import BuildAction, DiffAction
from chartwave.config import load_config
from chartwave.errors import ChartwaveError, ErrorKind, error_kinds
from chartwave.models.config import ChartwaveConfig, DiffMode
from chartwave.observability.logging import LOG_FORMATS, get_logger, setup_logging
from chartwave.plan.declaration import TEMPLATERS
from chartwave.plan.diff import ChangeRecord
from chartwave.plan.tags import normalize_tags
from chartwave.repo.registry import load_helm_repositories

_EXIT_CODES = {
    ErrorKind.VALIDATION: 2,
    ErrorKind.NOT_FOUND: 3,
    ErrorKind.DUPLICATE: 4,
}


def exit_code_for(exc: ChartwaveError) -> int:
    """Map the outermost mapped error kind to a process exit code (default 1)."""
    for kind in error_kinds(exc):
        if kind in _EXIT_CODES:
            return _EXIT_CODES[kind]
    return 1


def format_changes(records: list[ChangeRecord]) -> str:
    """Human-readable rendering of diff records."""
    lines: list[str] = []
    for rec in records:
        if rec.removed:
            lines.append(f"- {rec.unique_name} (only in previous plan)")
        elif rec.added:
            lines.append(f"+ {rec.unique_name} (new)")
        elif not rec.has_changes:
            lines.append(f"  {rec.unique_name}: no changes")
            continue
        else:
            lines.append(f"~ {rec.unique_name}")
        for fc in rec.field_changes:
            lines.append(f"    {fc.type}: {fc.path_str}: {fc.old!r} -> {fc.new!r}")
        for rc in rec.resource_changes:
            lines.append(f"    {rc.type} {rc.resource}")
            if rc.type == "modified":
                for fc in rc.field_changes:
                    lines.append(f"      {fc.type}: {fc.path_str}: {fc.old!r} -> {fc.new!r}")
    return "\n".join(lines)


def _run(coro):  # type: ignore[no-untyped-def]
    log = get_logger("cli")
    try:
        return asyncio.run(coro)
    except ChartwaveError as exc:
        log.error("command_failed", error=str(exc), kinds=[str(k) for k in error_kinds(exc)])
        sys.exit(exit_code_for(exc))


@click.group()
@click.option("--log-level", type=click.Choice(["debug", "info", "warning", "error"]), default=None)
@click.option("--log-format", type=click.Choice(list(LOG_FORMATS)), default=None)
@click.option("--plandir", default=None, help="Plan directory.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, log_format: str | None, plandir: str | None) -> None:
    """Plan, resolve and diff groups of Helm releases."""
    try:
        config = load_config()
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc

    if log_level:
        config.log = replace(config.log, level=log_level)
    if log_format:
        config.log = replace(config.log, format=log_format)
    if plandir:
        config.build = replace(config.build, plandir=plandir if plandir.endswith("/") else plandir + "/")

    setup_logging(config.log.level, config.log.format)
    ctx.obj = config


@cli.command()
@click.option("--yml", "yml", default=None, help="Declaration file.")
@click.option("--tags", "-t", multiple=True, help="Only releases with these tags (repeatable or comma-separated).")
@click.option("--match-all-tags", is_flag=True, default=None, help="Require every tag instead of any.")
@click.option("--diff-mode", type=click.Choice([m.value for m in DiffMode]), default=None)
@click.option("--show-secret", is_flag=True, default=None, help="Show Secret values in diffs.")
@click.option("--templater", type=click.Choice(sorted(TEMPLATERS)), default="copy")
@click.pass_obj
def build(
    config: ChartwaveConfig,
    yml: str | None,
    tags: tuple[str, ...],
    match_all_tags: bool | None,
    diff_mode: str | None,
    show_secret: bool | None,
    templater: str,
) -> None:
    """Build a plan."""
    if yml:
        config.build.yml = yml
    if tags:
        config.build.tags = normalize_tags(t for raw in tags for t in raw.split(",") if t.strip())
    if match_all_tags is not None:
        config.build.match_all_tags = match_all_tags
    if diff_mode:
        config.diff.mode = DiffMode(diff_mode)
    if show_secret is not None:
        config.diff.show_secret = show_secret

    result = _run(BuildAction(config, templater=TEMPLATERS[templater]()).run())
    if result.changes:
        click.echo(format_changes(result.changes))


@cli.group()
def diff() -> None:
    """Diff a built plan."""


@diff.command("plan")
@click.argument("previous_plandir")
@click.option("--show-secret", is_flag=True, default=False)
@click.pass_obj
def diff_plan(config: ChartwaveConfig, previous_plandir: str, show_secret: bool) -> None:
    """Diff the plan against the plan in PREVIOUS_PLANDIR."""
    config.diff.show_secret = show_secret
    records = _run(DiffAction(config).against_plan(previous_plandir))
    click.echo(format_changes(records))


@diff.command("live")
@click.option("--show-secret", is_flag=True, default=False)
@click.option("--kube-context", default=None)
@click.pass_obj
def diff_live_cmd(config: ChartwaveConfig, show_secret: bool, kube_context: str | None) -> None:
    """Diff the plan against the releases running in the cluster."""
    config.diff.show_secret = show_secret
    if kube_context:
        config.kube.context = kube_context
    records = _run(DiffAction(config).against_live())
    click.echo(format_changes(records))


@cli.group()
def repo() -> None:
    """Inspect chart repositories."""


@repo.command("list")
@click.pass_obj
def repo_list(config: ChartwaveConfig) -> None:
    """List repositories known to helm."""
    for cfg in load_helm_repositories(config.helm.repository_config):
        click.echo(f"{cfg.name}\t{cfg.url}")
