# paymsg/verify/verifier.py
from typing import List, Optional
from dataclasses import dataclass

from paymsg.core.address import message_address, profile_address
from paymsg.core.encoding import b64url_encode
from paymsg.core.errors import InvalidArgument
from paymsg.core.types import Message, PendingMessage, Profile
from paymsg.core.layout import decode_record
from paymsg.storage import RecordStore


@dataclass
class VerificationFailure:
    address: str
    message: str
    category: str = "general"  # e.g. "decode", "address", "escrow", "profile"


@dataclass
class VerificationResult:
    is_valid: bool
    message: str = ""
    failures: List[VerificationFailure] = None
    profiles: int = 0
    messages: int = 0
    escrowed: int = 0

    def __post_init__(self):
        if self.failures is None:
            self.failures = []

    @property
    def first_failure(self) -> Optional[VerificationFailure]:
        return self.failures[0] if self.failures else None

    def __bool__(self):
        return self.is_valid

    def __str__(self):
        if self.is_valid:
            return "Ledger is consistent ✓"
        lines = [f"Verification FAILED ({len(self.failures)} issues):"]
        for f in self.failures:
            lines.append(f"  • [{f.address}] {f.category}: {f.message}")
        return "\n".join(lines)


class LedgerVerifier:
    """
    Offline auditor for a record store.

    Checks that every record decodes, sits at the address derived from its
    own fields, that each pending message's address holds exactly its
    escrowed amount, that its recipient has a profile, and that no record
    address still holds funds after its record is gone.
    """

    def verify(self, store: RecordStore) -> VerificationResult:
        result = VerificationResult(True)
        with store.transaction():
            records = store.scan()
            record_balances = store.record_balances()
            held_by = {address: store.balance_of(address) for address, _ in records}
        profile_owners = set()
        pending = []

        for address, data in records:
            label = b64url_encode(address)
            try:
                record = decode_record(data)
            except InvalidArgument as e:
                result.failures.append(VerificationFailure(label, str(e), "decode"))
                continue

            if isinstance(record, Profile):
                expected = profile_address(record.owner)
                profile_owners.add(record.owner)
                result.profiles += 1
            else:
                expected = message_address(record.recipient, record.sender, record.nonce)
                pending.append((address, record))
                result.messages += 1
                result.escrowed += record.amount

            if expected != address:
                result.failures.append(
                    VerificationFailure(label, "record is not stored at its derived address", "address")
                )

        for address, msg in pending:
            label = b64url_encode(address)
            held = held_by[address]
            if held != msg.amount:
                result.failures.append(
                    VerificationFailure(label, f"escrow holds {held}, message says {msg.amount}", "escrow")
                )
            if msg.recipient not in profile_owners:
                result.failures.append(
                    VerificationFailure(label, "recipient has no profile", "profile")
                )

        # escrow left behind at an address whose record is gone
        for account, amount in record_balances.items():
            if account not in held_by and amount:
                result.failures.append(VerificationFailure(
                    b64url_encode(account), f"{amount} held with no record at this address", "escrow"
                ))

        result.is_valid = not result.failures
        result.message = (
            f"{result.profiles} profiles, {result.messages} pending messages, {result.escrowed} escrowed"
            if result.is_valid else f"Failed with {len(result.failures)} issues"
        )
        return result

    def verify_message(self, store: RecordStore, message: PendingMessage) -> bool:
        """True if `message` is pending at its derived address with its funds in escrow."""
        address = message_address(message.recipient, message.sender, message.nonce)
        data = store.get(address)
        if data is None:
            return False
        record = decode_record(data)
        if not isinstance(record, Message):
            return False
        return record.sealed() == message and store.balance_of(address) == message.amount
