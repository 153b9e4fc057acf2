"""Command-line interface for hashtier."""

import logging
import sys
from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from hashtier.base import (
    InvalidContentHashError,
    StoredFile,
    StoreError,
    validate_content_hash,
)
from hashtier.config import ConfigError, load_config
from hashtier.factory import create_filesystem
from hashtier.filesystem import TieredFileSystem

app = typer.Typer(
    name="hashtier",
    help="Inspect and move content between the local and remote tiers",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True, highlight=False)
    raise typer.Exit(1)


def _check_hash(value: str) -> str:
    try:
        return validate_content_hash(value)
    except InvalidContentHashError as e:
        raise typer.BadParameter(str(e))


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _check_log_level(value: str) -> str:
    level = value.upper()
    if level not in _LOG_LEVELS:
        raise typer.BadParameter(f"Must be one of: {', '.join(_LOG_LEVELS)}")
    return level


ContentHashArg = Annotated[
    str,
    typer.Argument(help="Content hash (hex digest)", callback=_check_hash),
]
ConfigOpt = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Configuration file (YAML, JSON or TOML)"),
]
LogLevelOpt = Annotated[
    str,
    typer.Option(
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        callback=_check_log_level,
    ),
]


def _open_filesystem(config_path: Optional[Path], log_level: str) -> TieredFileSystem:
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
    try:
        return create_filesystem(load_config(config_path))
    except ConfigError as e:
        _fail(str(e))


@app.command(name="resolve")
def resolve_cmd(
    content_hash: ContentHashArg,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """Show the tier of a content hash and the path that would be read."""
    fs = _open_filesystem(config, log_level)
    try:
        tier = fs.resolver.lookup_tier(content_hash)
        typer.echo(f"{tier.value}\t{fs.resolve_path(content_hash)}")
    finally:
        fs.close()


@app.command(name="check")
def check_cmd(
    content_hash: ContentHashArg,
    recover: Annotated[
        bool,
        typer.Option("--recover", help="Try to recover a missing local copy"),
    ] = False,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """Check whether content is readable from either tier."""
    fs = _open_filesystem(config, log_level)
    try:
        if recover:
            local = fs.check_local_readability(StoredFile(content_hash))
            typer.echo(f"local\t{'readable' if local.readable else 'unreadable'}")
            typer.echo(f"recovery\t{local.recovery.value}")
            readable = local.readable or fs.is_readable_by_hash(content_hash)
        else:
            readable = fs.is_readable_by_hash(content_hash)
        typer.echo(f"readable\t{'yes' if readable else 'no'}")
    finally:
        fs.close()

    if not readable:
        raise typer.Exit(1)


@app.command(name="push")
def push_cmd(
    content_hash: ContentHashArg,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """Copy the local copy of a content hash to the remote store."""
    fs = _open_filesystem(config, log_level)
    try:
        copied = fs.copy_local_to_remote(content_hash)
    finally:
        fs.close()

    if not copied:
        _fail(f"Failed to copy {content_hash} to remote")
    console.print(f"[green]Copied {content_hash} to remote[/green]", highlight=False)


@app.command(name="pull")
def pull_cmd(
    content_hash: ContentHashArg,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """Copy the remote copy of a content hash into the local store."""
    fs = _open_filesystem(config, log_level)
    try:
        copied = fs.copy_remote_to_local(content_hash)
    finally:
        fs.close()

    if not copied:
        _fail(f"Failed to copy {content_hash} from remote")
    console.print(f"[green]Copied {content_hash} from remote[/green]", highlight=False)


@app.command(name="evict")
def evict_cmd(
    content_hash: ContentHashArg,
    force: Annotated[
        bool,
        typer.Option("--force", help="Delete even if no remote copy is found"),
    ] = False,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """Delete the local copy of a content hash that also exists remotely."""
    fs = _open_filesystem(config, log_level)
    try:
        if not force and not fs.remote.is_readable(fs.remote.path_for(content_hash)):
            _fail(
                f"No remote copy of {content_hash}, refusing to delete "
                "the only copy (use --force to override)"
            )
        deleted = fs.delete_local(content_hash)
    finally:
        fs.close()

    if not deleted:
        _fail(f"Failed to delete local copy of {content_hash}")
    console.print(f"[green]Deleted local copy of {content_hash}[/green]", highlight=False)


@app.command(name="cat")
def cat_cmd(
    content_hash: ContentHashArg,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write content to this file instead of stdout"),
    ] = None,
    config: ConfigOpt = None,
    log_level: LogLevelOpt = "WARNING",
) -> None:
    """Write content to stdout or a file, reading from the resolved tier."""
    fs = _open_filesystem(config, log_level)
    try:
        file_ref = StoredFile(content_hash)
        if output is not None:
            with open(output, "wb") as f:
                fs.send_file(file_ref, f)
        else:
            fs.send_file(file_ref, sys.stdout.buffer)
            sys.stdout.buffer.flush()
    except (StoreError, OSError) as e:
        _fail(str(e))
    finally:
        fs.close()


def main() -> None:
    """Entry point for the console script."""
    app()


if __name__ == "__main__":
    main()
