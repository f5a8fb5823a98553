"""CLI entry point for gravedigger."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import click

from gravedigger import __version__

COMPLETION_SHELLS = ("bash", "zsh", "fish")


def _fail(exc: Exception) -> NoReturn:
    raise click.ClickException(str(exc)) from exc


def _confirm(message: str, force: bool) -> bool:
    if force:
        return True
    return click.confirm(message, default=False)


def _validate_flags(
    targets: tuple[str, ...],
    flags: dict[str, bool],
    completions: str | None,
    graveyard: str | None,
) -> None:
    """Reject flag combinations that have no meaning together."""
    active = {name for name, on in flags.items() if on}

    if completions and (active - {"verbose"} or targets or graveyard):
        raise click.UsageError("--completions can only be used by itself")
    if "decompose" in active:
        if active - {"decompose", "force", "verbose"} or targets:
            raise click.UsageError("-d,--decompose can only be used with --graveyard and --config")
    if "unbury" in active and "purge" in active:
        raise click.UsageError("-u,--unbury and -p,--purge are mutually exclusive")
    if "trash" in active and active & {"unbury", "purge", "seance"}:
        raise click.UsageError("-t,--trash cannot be combined with -u, -p or -s")
    if "seance" in active and "unbury" not in active and targets:
        raise click.UsageError("-s,--seance does not take targets")
    if "all" in active and "seance" not in active:
        raise click.UsageError("-a,--all only applies to -s,--seance")
    if "purge" in active and not targets:
        raise click.UsageError("-p,--purge needs at least one target")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("targets", nargs=-1, type=click.Path())
@click.option(
    "--graveyard",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory where deleted files rest.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (default: ~/.config/gravedigger/config.yaml).",
)
@click.option("-d", "--decompose", is_flag=True, help="Permanently delete the whole graveyard.")
@click.option("-s", "--seance", is_flag=True, help="List graves of files deleted under the cwd.")
@click.option("-a", "--all", "show_all", is_flag=True, help="With -s, list the whole graveyard.")
@click.option(
    "-u",
    "--unbury",
    is_flag=True,
    help="Restore TARGETS (grave or original paths), or the last burial if none.",
)
@click.option("-p", "--purge", "purge_", is_flag=True, help="Permanently delete buried TARGETS.")
@click.option("-i", "--inspect", is_flag=True, help="Print some info about each TARGET before burying.")
@click.option("-t", "--trash", is_flag=True, help="Send TARGETS to the system trash instead.")
@click.option("-f", "--force", is_flag=True, help="Answer yes to every prompt.")
@click.option("-v", "--verbose", is_flag=True, help="Log engine decisions to stderr.")
@click.option(
    "--completions",
    type=click.Choice(COMPLETION_SHELLS),
    default=None,
    metavar="SHELL",
    help="Print the shell completion script for SHELL.",
)
@click.version_option(__version__, prog_name="gravedigger")
@click.pass_context
def cli(
    ctx: click.Context,
    targets: tuple[str, ...],
    graveyard: str | None,
    config_path: str | None,
    decompose: bool,
    seance: bool,
    show_all: bool,
    unbury: bool,
    purge_: bool,
    inspect: bool,
    trash: bool,
    force: bool,
    verbose: bool,
    completions: str | None,
) -> None:
    """Gravedigger: a safe rm that buries files in a graveyard."""
    import logging

    from gravedigger.config import ConfigError, load_config
    from gravedigger.graveyard import Graveyard

    flags = {
        "decompose": decompose,
        "seance": seance,
        "all": show_all,
        "unbury": unbury,
        "purge": purge_,
        "inspect": inspect,
        "trash": trash,
        "force": force,
        "verbose": verbose,
    }
    _validate_flags(targets, flags, completions, graveyard)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    if completions:
        _print_completions(completions)
        return

    try:
        config = load_config(Path(config_path) if config_path else None)
    except ConfigError as exc:
        _fail(exc)
    gy = Graveyard.from_config(config, graveyard)
    logging.getLogger(__name__).debug("Graveyard set to: %s", gy.root)

    if decompose:
        _decompose(gy, force)
    elif unbury:
        _unbury(gy, targets, seance)
    elif seance:
        _seance(gy, show_all)
    elif purge_:
        _purge(gy, targets, force)
    elif not targets:
        click.echo(ctx.get_help())
    elif trash:
        _trash(targets)
    else:
        _bury(gy, targets, config, inspect, force)


def _print_completions(shell: str) -> None:
    from click.shell_completion import get_completion_class

    comp_cls = get_completion_class(shell)
    if comp_cls is None:
        raise click.UsageError(f"Unsupported shell: {shell}")
    comp = comp_cls(cli, {}, "gravedigger", "_GRAVEDIGGER_COMPLETE")
    click.echo(comp.source())


def _decompose(gy, force: bool) -> None:
    from gravedigger.errors import GraveyardError
    from gravedigger.graveyard import decompose

    if not _confirm("Really unlink the entire graveyard?", force):
        return
    try:
        decompose(gy)
    except GraveyardError as exc:
        _fail(exc)
    click.echo(f"Decomposed {gy.root}")


def _unbury_selectors(gy, targets: tuple[str, ...], with_seance: bool) -> list:
    from gravedigger.graveyard import Selector, seance
    from gravedigger.paths import is_within, resolve

    selectors = []
    for target in targets:
        path = resolve(target, must_exist=False)
        if is_within(path, gy.root):
            selectors.append(Selector.grave(path))
        else:
            selectors.append(Selector.original(path))
    if with_seance:
        selectors.extend(Selector.grave(e.grave_path) for e in seance(gy))
    if not selectors:
        selectors.append(Selector.latest())
    return selectors


def _unbury(gy, targets: tuple[str, ...], with_seance: bool) -> None:
    from gravedigger.errors import GraveyardError
    from gravedigger.graveyard import restore

    for selector in _unbury_selectors(gy, targets, with_seance):
        try:
            result = restore(gy, selector)
        except GraveyardError as exc:
            _fail(exc)
        click.echo(f"Returned {result.entry.grave_path} to {result.destination}")


def _seance(gy, show_all: bool) -> None:
    from gravedigger.graveyard import list_buried, seance

    entries = list_buried(gy) if show_all else seance(gy)
    for entry in entries:
        click.echo(str(entry.grave_path))
    for corrupt in gy.store.corrupt:
        click.echo(f"Skipped corrupt record line {corrupt.line_number}", err=True)


def _purge(gy, targets: tuple[str, ...], force: bool) -> None:
    from gravedigger.errors import GraveyardError
    from gravedigger.graveyard import Selector, purge, purge_path
    from gravedigger.paths import is_within, resolve

    for target in targets:
        path = resolve(target, must_exist=False)
        if not _confirm(f"Permanently unlink {path}?", force):
            click.echo(f"Skipping {path}")
            continue
        try:
            if is_within(path, gy.root) and gy.store.lookup(path) is None:
                purge_path(gy, path)
                click.echo(f"Unlinked {path}")
                continue
            selector = Selector.grave(path) if is_within(path, gy.root) else Selector.original(path)
            for entry in purge(gy, selector):
                click.echo(f"Unlinked {entry.grave_path}")
        except GraveyardError as exc:
            _fail(exc)


def _trash(targets: tuple[str, ...]) -> None:
    from gravedigger.errors import GraveyardError
    from gravedigger.graveyard import send_to_trash

    try:
        sent = send_to_trash(targets)
    except GraveyardError as exc:
        _fail(exc)
    for path in sent:
        click.echo(f"Trashed {path}")


def _bury(gy, targets: tuple[str, ...], config: dict, inspect: bool, force: bool) -> None:
    """Bury each target in turn; the first failure stops the batch.

    The loop lives here rather than in :func:`~gravedigger.graveyard.bury`
    because each target may prompt (inspect, already buried, big file) and
    those answers must come right before that target is handled.
    """
    import stat

    from gravedigger.errors import GraveyardError
    from gravedigger.graveyard import bury_one, purge_path
    from gravedigger.graveyard.mover import remove_entry
    from gravedigger.inspect import describe, humanize_bytes
    from gravedigger.paths import is_within, resolve, same_device

    threshold = config["big_file_threshold"]
    preview = config["inspect"]
    for target in targets:
        try:
            source = resolve(target, must_exist=True)

            if inspect:
                for line in describe(target, source, lines=preview["lines"], files=preview["files"]):
                    click.echo(line)
                if not _confirm(f"Send {target} to the graveyard?", force):
                    continue

            if is_within(source, gy.root):
                click.echo(f"{source} is already in the graveyard.")
                if _confirm("Permanently unlink it?", force):
                    purge_path(gy, source)
                else:
                    click.echo(f"Skipping {source}")
                continue

            st = source.lstat()
            if stat.S_ISREG(st.st_mode) and st.st_size > threshold and not same_device(source, gy.root):
                click.echo(f"About to copy a big file ({source} is {humanize_bytes(st.st_size)})")
                if not force and click.confirm("Permanently delete this file instead?", default=False):
                    remove_entry(source)
                    click.echo(f"Unlinked {source}")
                    continue

            bury_one(gy, source)
        except (GraveyardError, OSError) as exc:
            _fail(exc)
