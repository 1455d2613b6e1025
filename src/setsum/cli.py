"""Command-line interface for setsum."""

from __future__ import annotations

import logging
from typing import BinaryIO, Iterator

import click

from . import __version__
from .checksum import Setsum
from .db import connect, database_setsum, split_table_name, table_setsum
from .shards import combine
from .state import DEFAULT_HASH, HASHES

hash_option = click.option(
    "--hash",
    "hash_name",
    type=click.Choice(sorted(HASHES)),
    default=DEFAULT_HASH,
    show_default=True,
    help="Hash function items are mapped with.",
)


def read_lines(stream: BinaryIO) -> Iterator[bytes]:
    """Yield the lines of ``stream`` without their line endings."""
    for line in stream:
        if line.endswith(b"\n"):
            line = line[:-1]
        if line.endswith(b"\r"):
            line = line[:-1]
        yield line


def parse_digest(hexdigest: str, hash_name: str) -> Setsum:
    try:
        return Setsum.from_hexdigest(hexdigest, hash_name)
    except ValueError as e:
        raise click.BadParameter(str(e)) from None


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr.")
def cli(verbose: bool) -> None:
    """Compute and combine order-independent multiset checksums."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        )


@cli.command()
@click.argument("files", nargs=-1, type=click.File("rb"))
@click.option(
    "--remove",
    "remove_files",
    multiple=True,
    type=click.File("rb"),
    help="File whose lines are removed from the checksum. Repeatable.",
)
@hash_option
def lines(files: tuple[BinaryIO, ...], remove_files: tuple[BinaryIO, ...], hash_name: str) -> None:
    """Checksum the lines of FILES (standard input when none are given)."""
    if not files:
        files = (click.open_file("-", "rb"),)
    setsum = Setsum(hash_name)
    for f in files:
        setsum.update(read_lines(f))
    for f in remove_files:
        setsum.discard_all(read_lines(f))
    click.echo(setsum.hexdigest())


@cli.command()
@click.argument("digests", nargs=-1, required=True)
@hash_option
def add(digests: tuple[str, ...], hash_name: str) -> None:
    """Print the checksum of the union of DIGESTS."""
    total = combine((parse_digest(d, hash_name) for d in digests), hash_name)
    click.echo(total.hexdigest())


@cli.command()
@click.argument("minuend")
@click.argument("subtrahends", nargs=-1, required=True)
@hash_option
def subtract(minuend: str, subtrahends: tuple[str, ...], hash_name: str) -> None:
    """Print MINUEND with every SUBTRAHENDS checksum taken out."""
    result = parse_digest(minuend, hash_name)
    for d in subtrahends:
        result -= parse_digest(d, hash_name)
    click.echo(result.hexdigest())


@cli.command()
@click.argument("left")
@click.argument("right")
@hash_option
@click.pass_context
def compare(ctx: click.Context, left: str, right: str, hash_name: str) -> None:
    """Exit 0 if LEFT and RIGHT are the same checksum, 1 otherwise."""
    if parse_digest(left, hash_name) == parse_digest(right, hash_name):
        click.echo("equal")
        return
    click.echo("different")
    ctx.exit(1)


@cli.command()
@click.argument("table_name")
@hash_option
def table(table_name: str, hash_name: str) -> None:
    """Checksum the rows of TABLE_NAME (schema.table, default schema public)."""
    schema, name = split_table_name(table_name)
    try:
        with connect() as conn:
            setsum = table_setsum(conn, schema, name, hash_name)
        click.echo(f"{schema}.{name} {setsum.hexdigest()}")
    except Exception as e:
        click.echo(f"Error hashing table: {e}", err=True)
        raise click.ClickException(str(e))


@cli.command()
@click.option("--workers", type=int, default=None, help="Tables hashed in parallel (default: SETSUM_WORKERS or 1).")
@hash_option
def database(workers: int | None, hash_name: str) -> None:
    """Checksum every user table and the database as a whole."""
    try:
        setsums = database_setsum(workers=workers, hash_name=hash_name)
        if not setsums:
            click.echo("No tables found")
            return
        for (schema, name), setsum in setsums.items():
            click.echo(f"{schema}.{name} {setsum.hexdigest()}")
        total = combine(setsums.values(), hash_name)
        click.echo(f"TOTAL {total.hexdigest()}")
    except Exception as e:
        click.echo(f"Error hashing database: {e}", err=True)
        raise click.ClickException(str(e))


@cli.command()
def version() -> None:
    """Display the setsum version."""
    click.echo(__version__)
