# paymsg/cli/main.py
"""
CLI for operating a local paid-messaging escrow ledger.
"""

import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from paymsg.core.canon import canonical_json_str
from paymsg.core.encoding import b64url_decode, b64url_encode
from paymsg.core.errors import PaymsgError
from paymsg.core.layout import decode_record
from paymsg.core.types import Message, PendingMessage
from paymsg.core.log import setup_logging
from paymsg.crypto.keys import IdentityKeyPair
from paymsg.runtime import LedgerRuntime, sign_request
from paymsg.storage import SQLiteStorage, default_db_path
from paymsg.verify.verifier import LedgerVerifier

app = typer.Typer(
    name="paymsg",
    help="Paid messages held in escrow until the recipient reads them",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def get_db_path(db_flag: Optional[Path] = None) -> Path:
    """Resolve DB path in this order:
    1. --db flag
    2. PAYMSG_DB_PATH environment variable
    3. Default: ~/.paymsg/ledger.db
    """
    path = (db_flag or default_db_path()).resolve()

    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def open_runtime(db: Optional[Path], must_exist: bool = True) -> LedgerRuntime:
    db_path = get_db_path(db)
    if must_exist and not db_path.exists():
        console.print(f"[red]Database file not found: {db_path}[/]")
        console.print("[yellow]Run `paymsg init` first, or point --db / PAYMSG_DB_PATH at a ledger.[/]")
        raise typer.Exit(1)
    try:
        return LedgerRuntime(SQLiteStorage(db_path))
    except Exception as e:
        console.print(f"[red]Failed to open database: {str(e)}[/]")
        raise typer.Exit(1)


def load_key(path: Path) -> IdentityKeyPair:
    try:
        return IdentityKeyPair.load(path)
    except (OSError, ValueError, KeyError, PaymsgError) as e:
        console.print(f"[red]Cannot load key file {path}: {e}[/]")
        raise typer.Exit(1)


def parse_id(value: str, what: str = "identity") -> bytes:
    try:
        raw = b64url_decode(value)
    except PaymsgError:
        raw = b""
    if len(raw) != 32:
        console.print(f"[red]Not a valid {what}: {value}[/]")
        raise typer.Exit(1)
    return raw


def submit(runtime: LedgerRuntime, signer: IdentityKeyPair, op: str, **params):
    try:
        return runtime.submit(sign_request(signer, op, **params))
    except PaymsgError as e:
        console.print(f"[red]{e.kind}: {e}[/]")
        raise typer.Exit(1)
    finally:
        runtime.close()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log ledger operations to stderr"),
):
    """Operate a paid-messaging escrow ledger."""
    setup_logging("INFO" if verbose else None)


@app.command()
def keygen(
    output: Path = typer.Argument(..., help="Where to write the new key file"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing key file"),
):
    """Generate a new Ed25519 identity."""
    if output.exists() and not force:
        console.print(f"[red]Key file already exists (use --force to overwrite): {output}[/]")
        raise typer.Exit(1)
    keypair = IdentityKeyPair.generate()
    keypair.save(output)
    console.print(f"[green]Identity:[/] {keypair.public_key_b64url()}")
    console.print(f"  key written to {output}")


@app.command()
def init(
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
    key: Optional[Path] = typer.Option(None, "--key", "-k", help="Also send the bootstrap call as this identity"),
):
    """Create the ledger database (and send the no-op bootstrap call)."""
    runtime = open_runtime(db, must_exist=False)
    if key:
        submit(runtime, load_key(key), "initialize")
    else:
        runtime.close()
    console.print(f"[green]Ledger ready at {get_db_path(db)}[/]")


@app.command()
def airdrop(
    identity: str = typer.Argument(..., help="Account to fund (b64url identity)"),
    amount: int = typer.Argument(..., help="Amount in smallest units"),
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
):
    """Mint development funds into an account."""
    account = parse_id(identity)
    runtime = open_runtime(db)
    try:
        balance = runtime.airdrop(account, amount)
    except PaymsgError as e:
        console.print(f"[red]{e.kind}: {e}[/]")
        raise typer.Exit(1)
    finally:
        runtime.close()
    console.print(f"[green]Balance of {identity}: {balance}[/]")


@app.command()
def balance(
    identity: str = typer.Argument(..., help="Account (b64url identity or message id)"),
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
):
    """Show the balance of an account."""
    account = parse_id(identity, "account")
    runtime = open_runtime(db)
    try:
        console.print(str(runtime.balance_of(account)))
    finally:
        runtime.close()


@app.command()
def register(
    price: int = typer.Argument(..., help="Minimum price per message, smallest units"),
    key: Path = typer.Option(..., "--key", "-k", help="Identity key file (see `paymsg keygen`)"),
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
):
    """Register a profile with a message price."""
    signer = load_key(key)
    submit(open_runtime(db), signer, "register_profile", price=price)
    console.print(f"[green]Profile registered for {signer.public_key_b64url()} at price {price}[/]")


@app.command("update-price")
def update_price(
    price: int = typer.Argument(..., help="New minimum price, smallest units"),
    key: Path = typer.Option(..., "--key", "-k", help="Identity key file (see `paymsg keygen`)"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Profile owner (defaults to the key's identity)"),
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
):
    """Change the price of your profile."""
    signer = load_key(key)
    owner_id = parse_id(owner) if owner else None
    submit(open_runtime(db), signer, "update_price", price=price, owner=owner_id)
    console.print(f"[green]Price updated to {price}[/]")


@app.command()
def price(
    identity: str = typer.Argument(..., help="Recipient identity"),
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
):
    """Look up the price a recipient charges."""
    owner = parse_id(identity)
    runtime = open_runtime(db)
    try:
        console.print(str(runtime.get_price(owner)))
    except PaymsgError as e:
        console.print(f"[red]{e.kind}: {e}[/]")
        raise typer.Exit(1)
    finally:
        runtime.close()


@app.command()
def send(
    recipient: str = typer.Argument(..., help="Recipient identity"),
    amount: int = typer.Argument(..., help="Amount to escrow, smallest units"),
    content: str = typer.Argument(..., help="Message text"),
    key: Path = typer.Option(..., "--key", "-k", help="Identity key file (see `paymsg keygen`)"),
    nonce: Optional[int] = typer.Option(None, "--nonce", help="Explicit nonce (default: current time in ms)"),
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
):
    """Send a paid message; funds stay in escrow until it is read."""
    signer = load_key(key)
    recipient_id = parse_id(recipient)
    if nonce is None:
        nonce = time.time_ns() // 1_000_000
    message_id = submit(
        open_runtime(db), signer, "send_message",
        recipient=recipient_id, nonce=nonce, amount=amount, content=content,
    )
    console.print(f"[green]Sent, {amount} in escrow[/]")
    console.print(f"  message id: {b64url_encode(message_id)}")
    console.print(f"  nonce:      {nonce}")


@app.command()
def read(
    message_id: str = typer.Argument(..., help="Message id"),
    key: Path = typer.Option(..., "--key", "-k", help="Identity key file (see `paymsg keygen`)"),
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
):
    """Read a message addressed to you and claim its funds (deletes the message)."""
    signer = load_key(key)
    mid = parse_id(message_id, "message id")
    content = submit(open_runtime(db), signer, "read_and_claim", message_id=mid)
    console.print(content, markup=False, highlight=False)


@app.command()
def pending(
    sender: Optional[str] = typer.Option(None, "--sender", help="Messages sent by this identity"),
    recipient: Optional[str] = typer.Option(None, "--recipient", help="Messages waiting for this identity"),
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
):
    """List pending messages by sender or recipient. Content stays sealed until read."""
    if bool(sender) == bool(recipient):
        console.print("[red]Give exactly one of --sender or --recipient[/]")
        raise typer.Exit(1)

    runtime = open_runtime(db)
    try:
        if sender:
            found = runtime.pending_sent_by(parse_id(sender))
        else:
            found = runtime.pending_for(parse_id(recipient))
    finally:
        runtime.close()

    if not found:
        console.print("[yellow]No pending messages.[/]")
        return

    table = Table(title="Pending Messages")
    table.add_column("Message ID")
    table.add_column("Sender")
    table.add_column("Recipient")
    table.add_column("Nonce")
    table.add_column("Escrowed")
    for address, msg in found:
        table.add_row(
            b64url_encode(address), b64url_encode(msg.sender), b64url_encode(msg.recipient),
            str(msg.nonce), str(msg.amount),
        )
    console.print(table)


@app.command()
def audit(
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
):
    """Check every record sits at its derived address with its escrow intact."""
    runtime = open_runtime(db)
    try:
        result = LedgerVerifier().verify(runtime.store)
    finally:
        runtime.close()

    if result.is_valid:
        console.print("[green]✓ Ledger is consistent[/]")
        console.print(f"  {result.message}")
    else:
        console.print("[red]✗ Ledger audit failed[/]")
        for failure in result.failures:
            console.print(f"  • [{failure.address}] {failure.category}: {failure.message}")
        raise typer.Exit(1)


@app.command()
def export(
    db: Optional[Path] = typer.Option(None, "--db", help="Path to SQLite database (overrides PAYMSG_DB_PATH env var)"),
    output: Path = typer.Option(Path("paymsg-records.jsonl"), "--output", "-o", help="Output file"),
):
    """Export all records as JSONL (one decoded record per line)."""
    runtime = open_runtime(db)
    try:
        records = runtime.store.scan()
        with open(output, "w", encoding="utf-8") as f:
            for address, data in records:
                record = decode_record(data)
                if isinstance(record, Message):
                    # content is only revealed by read_and_claim
                    record = record.sealed()
                entry = {"address": b64url_encode(address), **record.to_dict()}
                if isinstance(record, PendingMessage):
                    entry["escrow_balance"] = runtime.balance_of(address)
                f.write(canonical_json_str(entry))
                f.write("\n")
    except PaymsgError as e:
        console.print(f"[red]Failed to export: {e}[/]")
        raise typer.Exit(1)
    finally:
        runtime.close()

    console.print(f"[green]Exported {len(records)} records to {output}[/]")


if __name__ == "__main__":
    app()
