# starledger/cli/main.py
"""
CLI for registering stars and inspecting / validating the star ledger.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from starledger.chain.ownership import DEFAULT_THRESHOLD_SECONDS
from starledger.core.errors import LedgerError
from starledger.registry import StarRegistry
from starledger.verify.validator import ChainValidator

app = typer.Typer(
    name="star-ledger",
    help="Register stars against Bitcoin addresses and validate the ledger",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def get_db_path(db_flag: Optional[Path] = None) -> Path:
    """Resolve DB path in this order:
    1. --db flag
    2. STARLEDGER_DB_PATH environment variable
    3. Default: ~/.starledger/chain.db
    """
    if db_flag:
        path = db_flag.resolve()
    else:
        env_path = os.environ.get("STARLEDGER_DB_PATH")
        if env_path:
            path = Path(env_path).resolve()
        else:
            path = Path.home() / ".starledger" / "chain.db"

    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def open_registry(db: Optional[Path], must_exist: bool = True, **kwargs) -> StarRegistry:
    db_path = get_db_path(db)

    if must_exist and not db_path.exists():
        console.print(f"[red]Database file not found: {db_path}[/]")
        console.print("[yellow]To get started:[/]")
        console.print("  • Run: star-ledger init")
        console.print("  • Set env var: export STARLEDGER_DB_PATH=/path/to/chain.db")
        console.print("  • Or use --db: star-ledger height --db /custom/path.db")
        raise typer.Exit(1)

    try:
        return StarRegistry(storage=f"sqlite://{db_path}", **kwargs)
    except Exception as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        raise typer.Exit(1)


def print_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, sort_keys=True))


def reject_json_constant(name: str):
    raise ValueError(f"{name} is not allowed in a star descriptor")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log chain activity to stderr"),
):
    """Manage the star ownership ledger."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


@app.command()
def init(
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides STARLEDGER_DB_PATH)"),
):
    """Create the database and the genesis block (no-op if it already exists)."""
    with open_registry(db, must_exist=False) as registry:
        registry.initialize_chain()
        genesis = registry.get_block_by_height(0)
        console.print(f"[green]Chain ready at height {registry.get_chain_height()}[/]")
        console.print(f"  genesis: {genesis.hash}")


@app.command()
def height(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Print the current chain height."""
    with open_registry(db) as registry:
        typer.echo(registry.get_chain_height())


@app.command("request-message")
def request_message(
    address: str = typer.Argument(..., help="Bitcoin address that will sign the message"),
):
    """Print the ownership message to sign with your wallet."""
    registry = StarRegistry()
    typer.echo(registry.request_message_ownership_verification(address))


@app.command()
def submit(
    address: str = typer.Argument(..., help="Bitcoin address that signed the message"),
    message: str = typer.Argument(..., help="Message returned by request-message"),
    signature: str = typer.Argument(..., help="Base64 signature produced by the wallet"),
    star: str = typer.Option(..., "--star", help='Star descriptor as JSON, e.g. \'{"dec": "1", "ra": "2"}\''),
    threshold: int = typer.Option(
        DEFAULT_THRESHOLD_SECONDS,
        "--threshold",
        envvar="STARLEDGER_THRESHOLD",
        help="Seconds a signed message stays valid",
    ),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Submit a signed star claim."""
    try:
        star_obj = json.loads(star, parse_constant=reject_json_constant)
    except ValueError as e:
        console.print(f"[red]--star is not valid JSON: {e}[/]")
        raise typer.Exit(1)

    with open_registry(db, threshold=threshold) as registry:
        try:
            block = registry.submit_star(address, message, signature, star_obj)
        except LedgerError as e:
            console.print(f"[red]✗ Star rejected: {e}[/]")
            raise typer.Exit(1)

    console.print(f"[green]✓ Star registered at height {block.height}[/]")
    print_json(block.to_dict())


@app.command()
def block(
    block_hash: Optional[str] = typer.Option(None, "--hash", help="Look up by block hash"),
    block_height: Optional[int] = typer.Option(None, "--height", help="Look up by height"),
    decode: bool = typer.Option(False, "--decode", help="Also print the decoded payload"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Show one block, looked up by hash or by height."""
    if (block_hash is None) == (block_height is None):
        console.print("[red]Give exactly one of --hash or --height[/]")
        raise typer.Exit(2)

    with open_registry(db) as registry:
        if block_hash is not None:
            found = registry.get_block_by_hash(block_hash)
        else:
            found = registry.get_block_by_height(block_height)

        if found is None:
            console.print("[yellow]Block not found[/]")
            raise typer.Exit(1)

        data = found.to_dict()
        if decode:
            try:
                data["payload"] = found.decode_payload().to_dict()
            except LedgerError as e:
                console.print(f"[red]{e}[/]")
                raise typer.Exit(1)
        print_json(data)


@app.command()
def stars(
    address: str = typer.Argument(..., help="Wallet address"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """List the stars registered by a wallet address."""
    with open_registry(db) as registry:
        try:
            owned = registry.get_stars_by_wallet_address(address)
        except LedgerError as e:
            console.print(f"[red]Failed to read stars: {e}[/]")
            raise typer.Exit(1)

    if not owned:
        console.print(f"[yellow]No stars found for {address}[/]")
        return

    table = Table(title=f"Stars owned by {address}")
    table.add_column("#")
    table.add_column("Star")
    for i, entry in enumerate(owned):
        table.add_row(str(i), json.dumps(entry.star, sort_keys=True))
    console.print(table)


@app.command()
def validate(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Validate every block hash and hash link in the chain."""
    with open_registry(db) as registry:
        result = ChainValidator().validate(registry.chain.blocks)
        n_blocks = registry.get_chain_height() + 1

    if result.is_valid:
        console.print(f"[green]✓ Chain is valid ({n_blocks} blocks)[/]")
        return

    console.print(f"[red]✗ Chain validation failed ({len(result.failures)} issues)[/]")
    for failure in result.failures:
        console.print(f"  • [{failure.index}] {failure.category}: {failure.message}")
    raise typer.Exit(1)


@app.command()
def export(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    output: Path = typer.Option(Path("chain.jsonl"), "--output", "-o", help="Output file"),
):
    """Export the chain as JSONL (one block per line)."""
    with open_registry(db) as registry:
        blocks = registry.chain.blocks

    with open(output, "w", encoding="utf-8") as f:
        for b in blocks:
            json.dump(b.to_dict(), f, separators=(",", ":"))
            f.write("\n")

    console.print(f"[green]Exported {len(blocks)} blocks to {output}[/]")


if __name__ == "__main__":
    app()
