# tests/test_cli.py
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from paymsg.cli.main import app
from paymsg.crypto.keys import IdentityKeyPair

runner = CliRunner()


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    db_path = tmp_path / "test-cli.db"
    result = runner.invoke(app, ["init", "--db", str(db_path)])
    assert result.exit_code == 0, result.stdout
    return db_path


@pytest.fixture
def keys(tmp_path: Path):
    """Key files for a recipient and a sender."""
    out = {}
    for name in ("bob", "alice"):
        kp = IdentityKeyPair.generate()
        path = tmp_path / f"{name}.key"
        kp.save(path)
        out[name] = (path, kp.public_key_b64url())
    return out


@pytest.fixture
def populated_db(temp_db: Path, keys) -> Path:
    """Bob charges 100, Alice is funded with 1000."""
    bob_key, _ = keys["bob"]
    _, alice_id = keys["alice"]
    assert runner.invoke(app, ["register", "100", "--key", str(bob_key), "--db", str(temp_db)]).exit_code == 0
    assert runner.invoke(app, ["airdrop", "--db", str(temp_db), "--", alice_id, "1000"]).exit_code == 0
    return temp_db


def send(db: Path, keys, amount: int, content: str, nonce: int = 1):
    alice_key, _ = keys["alice"]
    _, bob_id = keys["bob"]
    return runner.invoke(app, [
        "send", "--key", str(alice_key), "--nonce", str(nonce), "--db", str(db),
        "--", bob_id, str(amount), content,
    ])


def message_id_from(stdout: str) -> str:
    for line in stdout.splitlines():
        if "message id:" in line:
            return line.split("message id:")[1].strip()
    raise AssertionError(f"no message id in output:\n{stdout}")


def test_missing_db(tmp_path: Path, keys):
    _, bob_id = keys["bob"]
    result = runner.invoke(app, ["price", "--db", str(tmp_path / "nope.db"), "--", bob_id])
    assert result.exit_code == 1
    assert "not found" in result.stdout.lower()


def test_keygen(tmp_path: Path):
    path = tmp_path / "new.key"
    result = runner.invoke(app, ["keygen", str(path)])
    assert result.exit_code == 0
    assert path.exists()
    identity = IdentityKeyPair.load(path).public_key_b64url()
    assert identity in result.stdout

    again = runner.invoke(app, ["keygen", str(path)])
    assert again.exit_code == 1
    assert "already exists" in again.stdout


def test_register_and_price(populated_db: Path, keys):
    _, bob_id = keys["bob"]
    result = runner.invoke(app, ["price", "--db", str(populated_db), "--", bob_id])
    assert result.exit_code == 0
    assert result.stdout.strip() == "100"


def test_register_twice(populated_db: Path, keys):
    bob_key, _ = keys["bob"]
    result = runner.invoke(app, ["register", "5", "--key", str(bob_key), "--db", str(populated_db)])
    assert result.exit_code == 1
    assert "AlreadyExists" in result.stdout


def test_update_price(populated_db: Path, keys):
    bob_key, bob_id = keys["bob"]
    alice_key, _ = keys["alice"]
    result = runner.invoke(app, ["update-price", "250", "--key", str(bob_key), "--db", str(populated_db)])
    assert result.exit_code == 0

    denied = runner.invoke(app, [
        "update-price", "--key", str(alice_key), "--owner=" + bob_id, "--db", str(populated_db), "--", "1",
    ])
    assert denied.exit_code == 1
    assert "Unauthorized" in denied.stdout

    price = runner.invoke(app, ["price", "--db", str(populated_db), "--", bob_id])
    assert price.stdout.strip() == "250"


def test_send_underpriced(populated_db: Path, keys):
    result = send(populated_db, keys, 99, "cheap")
    assert result.exit_code == 1
    assert "Underpriced" in result.stdout


def test_send_pending_read(populated_db: Path, keys):
    bob_key, bob_id = keys["bob"]
    _, alice_id = keys["alice"]

    sent = send(populated_db, keys, 150, "hello there")
    assert sent.exit_code == 0, sent.stdout
    mid = message_id_from(sent.stdout)

    pending = runner.invoke(app, ["pending", "--sender=" + alice_id, "--db", str(populated_db)])
    assert pending.exit_code == 0
    assert "Pending Messages" in pending.stdout
    assert "hello there" not in pending.stdout

    read = runner.invoke(app, ["read", "--key", str(bob_key), "--db", str(populated_db), "--", mid])
    assert read.exit_code == 0
    assert "hello there" in read.stdout

    again = runner.invoke(app, ["read", "--key", str(bob_key), "--db", str(populated_db), "--", mid])
    assert again.exit_code == 1
    assert "NotFound" in again.stdout

    balance = runner.invoke(app, ["balance", "--db", str(populated_db), "--", bob_id])
    assert balance.stdout.strip() == "150"


def test_read_by_sender_is_unauthorized(populated_db: Path, keys):
    alice_key, _ = keys["alice"]
    mid = message_id_from(send(populated_db, keys, 100, "not yours").stdout)
    result = runner.invoke(app, ["read", "--key", str(alice_key), "--db", str(populated_db), "--", mid])
    assert result.exit_code == 1
    assert "Unauthorized" in result.stdout


def test_pending_needs_one_filter(populated_db: Path):
    result = runner.invoke(app, ["pending", "--db", str(populated_db)])
    assert result.exit_code == 1


def test_audit(populated_db: Path, keys):
    send(populated_db, keys, 120, "audited")
    result = runner.invoke(app, ["audit", "--db", str(populated_db)])
    assert result.exit_code == 0
    assert "consistent" in result.stdout
    assert "120 escrowed" in result.stdout


def test_export_creates_jsonl(populated_db: Path, keys, tmp_path: Path):
    send(populated_db, keys, 100, "sealed")
    output_file = tmp_path / "export-test.jsonl"

    result = runner.invoke(app, ["export", "--db", str(populated_db), "--output", str(output_file)])
    assert result.exit_code == 0
    assert "Exported 2 records" in result.stdout

    with open(output_file, "r", encoding="utf-8") as f:
        entries = [json.loads(line) for line in f]
    assert sorted(e["type"] for e in entries) == ["Message", "Profile"]
    message = next(e for e in entries if e["type"] == "Message")
    assert "content" not in message
    assert message["content_len"] == len("sealed")
    assert message["escrow_balance"] == 100
