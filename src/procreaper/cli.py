"""CLI commands for procreaper."""

import time
from pathlib import Path

import click

from procreaper.config import Config

VERSION = "0.1.0"


def _load_config(ctx: click.Context) -> Config:
    return ctx.obj["config"]


@click.group(invoke_without_command=True)
@click.version_option(VERSION, prog_name="procreaper")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to config.toml",
)
@click.pass_context
def main(ctx: click.Context, config_path: Path | None) -> None:
    """Inspect processes and periodically kill the most wasteful one."""
    try:
        config = Config.load(config_path)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path

    # Events go to the log file, never to command output
    from procreaper.logging import configure

    source = "tui" if ctx.invoked_subcommand in (None, "tui") else "cli"
    try:
        configure(config, source=source)
    except ValueError as e:
        raise click.ClickException(str(e)) from e

    if ctx.invoked_subcommand is None:
        ctx.invoke(tui)


@main.command()
@click.pass_context
def tui(ctx: click.Context) -> None:
    """Launch interactive process viewer."""
    from procreaper.app import ProcReaperApp
    from procreaper.core import TaskReaper

    ProcReaperApp(TaskReaper(_load_config(ctx))).run()


@main.command(name="list")
@click.option("--scores", is_flag=True, help="Show only eligible processes ranked by garbage score")
@click.option("--exclude", default="", help="Semicolon-separated names to exclude (with --scores)")
@click.option("--limit", "-n", default=20, help="Number of processes to show")
@click.pass_context
def list_(ctx: click.Context, scores: bool, exclude: str, limit: int) -> None:
    """List running processes."""
    from procreaper.app import format_bytes
    from procreaper.models import ReclamationConfig
    from procreaper.monitor import ProcessProvider
    from procreaper.policy import rank_candidates

    provider = ProcessProvider(on_warning=lambda msg: click.echo(msg, err=True))
    snapshots = provider.list_processes()

    if not scores:
        click.echo(f"{'PID':>8}  {'MEMORY':>7}  {'PRIORITY':<12}  {'CPU(s)':>9}  NAME")
        for proc in snapshots[:limit]:
            click.echo(
                f"{proc.pid:>8}  {format_bytes(proc.physical_memory):>7}  "
                f"{proc.priority_class.name:<12}  {proc.total_cpu_time:>9.1f}  {proc.name}"
            )
        return

    settings = _load_config(ctx).reclamation
    raw = exclude or ";".join(settings.exclusions)
    config = ReclamationConfig.from_raw(settings.interval_seconds, raw)
    ranked = rank_candidates(snapshots, config)
    if not ranked:
        click.echo("No eligible processes.")
        return

    click.echo(f"{'PID':>8}  {'SCORE':>12}  NAME")
    for proc, score in ranked[:limit]:
        click.echo(f"{proc.pid:>8}  {score:>12.1f}  {proc.name}")


@main.command()
@click.argument("name")
@click.argument("pid", type=int)
def kill(name: str, pid: int) -> None:
    """Kill the process NAME with id PID."""
    from procreaper.killer import TerminationExecutor
    from procreaper.models import KillOutcome

    result = TerminationExecutor().terminate(name, pid)
    if result.outcome is KillOutcome.FAILED:
        raise click.ClickException(result.message)
    click.echo(result.message)


@main.command()
@click.argument("path")
def spawn(path: str) -> None:
    """Start the executable at PATH."""
    from procreaper.killer import spawn as spawn_process

    result = spawn_process(path)
    if not result.ok:
        raise click.ClickException(result.message)
    click.echo(result.message)


@main.command()
@click.option("--interval", type=click.IntRange(min=1), default=None, help="Seconds between ticks")
@click.option("--exclude", default=None, help="Semicolon-separated process names never killed")
@click.option("--once", is_flag=True, help="Run a single reclamation tick and exit")
@click.pass_context
def reap(ctx: click.Context, interval: int | None, exclude: str | None, once: bool) -> None:
    """Run reclamation without the TUI."""
    from procreaper.core import TaskReaper

    config = _load_config(ctx)
    reaper = TaskReaper(config)
    reaper.subscribe_results(lambda result: click.echo(result.message))
    reaper.subscribe_warnings(lambda msg: click.echo(msg, err=True))

    if exclude is None:
        exclude = ";".join(config.reclamation.exclusions)
    active = reaper.set_reclamation(True, interval, exclude)
    click.echo(
        f"Reclaiming every {active.interval_seconds}s, "
        f"excluding: {', '.join(sorted(active.exclusion_names)) or '(none)'}"
    )

    try:
        if once:
            if reaper.scheduler.tick() is None:
                click.echo("No eligible process.")
            return

        while reaper.reclamation_enabled:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        reaper.close()


@main.command()
@click.option("--count", "-n", default=5, help="Number of readings to print")
@click.pass_context
def usage(ctx: click.Context, count: int) -> None:
    """Print system-wide CPU usage readings."""
    from procreaper.core import TaskReaper

    reaper = TaskReaper(_load_config(ctx))
    reaper.subscribe_usage(lambda label, percent: click.echo(f"{label} CPU: {percent:.1f} %"))
    for _ in range(count):
        reaper.usage.sample()


@main.group()
def config() -> None:
    """Manage the configuration file."""


@config.command()
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def init(ctx: click.Context, force: bool) -> None:
    """Write a config file with default values."""
    path = ctx.obj["config_path"] or Config().config_path
    if path.exists() and not force:
        raise click.ClickException(f"{path} already exists (use --force to overwrite)")
    Config().save(path)
    click.echo(f"Wrote {path}")


@config.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Print the effective configuration."""
    click.echo(_load_config(ctx).to_toml())


if __name__ == "__main__":
    main()
