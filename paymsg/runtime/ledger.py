# paymsg/runtime/ledger.py
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from paymsg.core.address import message_address, profile_address
from paymsg.core.constants import MAX_CONTENT_LEN
from paymsg.core.encoding import b64url_decode, b64url_encode
from paymsg.core.errors import InsufficientFunds, InvalidArgument, PaymsgError
from paymsg.core.types import Effect, PendingMessage, Profile, Transfer, require_identity, require_u64
from paymsg.escrow import MessageEscrow, ProfileRegistry
from paymsg.storage import RecordStore, create_storage

from .auth import SignedRequest, authenticate

logger = logging.getLogger(__name__)


def _short(identity: bytes) -> str:
    return b64url_encode(identity)[:8]


class LedgerRuntime:
    """
    Executes the four entry points against a RecordStore.

    Every operation runs inside one exclusive store transaction: build the
    Effect from the current state, settle its transfers against current
    balances, then hand creates, writes and balances to a single commit.
    Other writers, in this process or another, wait until it ends. Any
    error rolls the whole transaction back.
    """

    def __init__(
        self,
        store: RecordStore | str | None = None,
        clock: Optional[Callable[[], int]] = None,
        max_content_len: int = MAX_CONTENT_LEN,
    ):
        if store is None:
            store = create_storage("memory://")
        elif isinstance(store, str):
            stripped = store.strip()
            # Plain file path → SQLite
            if "://" not in stripped:
                stripped = f"sqlite://{stripped}"
            store = create_storage(stripped)
        self.store = store
        self.clock = clock or (lambda: int(time.time()))
        self.registry = ProfileRegistry(self.store)
        self.escrow = MessageEscrow(self.store, self.registry, max_content_len=max_content_len)

    # ── entry points (caller already authenticated)

    def initialize(self, caller: bytes) -> None:
        """Bootstrap entry kept for compatibility; does nothing."""
        logger.debug("initialize called by %s", _short(caller))

    def register_profile(self, caller: bytes, price: int) -> bytes:
        self._execute(
            "register_profile", caller,
            lambda: self.registry.register_profile(caller, price, now=self.clock()),
        )
        return profile_address(caller)

    def update_price(self, caller: bytes, new_price: int, owner: Optional[bytes] = None) -> None:
        owner = caller if owner is None else owner
        self._execute(
            "update_price", caller,
            lambda: self.registry.update_price(caller, owner, new_price),
        )

    def send_message(self, caller: bytes, recipient: bytes, nonce: int, amount: int, content: str) -> bytes:
        self._execute(
            "send_message", caller,
            lambda: self.escrow.send_message(caller, recipient, nonce, amount, content, now=self.clock()),
        )
        return message_address(recipient, caller, nonce)

    def read_and_claim(self, caller: bytes, message_id: bytes) -> str:
        effect = self._execute(
            "read_and_claim", caller,
            lambda: self.escrow.read_and_claim(caller, message_id),
        )
        return effect.result

    def submit(self, request: SignedRequest):
        """Authenticate a signed request and dispatch it to its entry point."""
        caller = authenticate(request)
        p = request.params
        if request.op == "initialize":
            return self.initialize(caller)
        if request.op == "register_profile":
            return self.register_profile(caller, _int(p, "price"))
        if request.op == "update_price":
            owner = _bytes(p, "owner") if "owner" in p else None
            return self.update_price(caller, _int(p, "price"), owner=owner)
        if request.op == "send_message":
            return self.send_message(
                caller, _bytes(p, "recipient"), _int(p, "nonce"), _int(p, "amount"), _text(p, "content")
            )
        if request.op == "read_and_claim":
            return self.read_and_claim(caller, _bytes(p, "message_id"))
        raise InvalidArgument(f"unknown operation: {request.op!r}")

    # ── reads

    def get_price(self, owner: bytes) -> int:
        return self.registry.get_price(owner)

    def get_profile(self, owner: bytes) -> Profile:
        return self.registry.get_profile(owner)

    def get_message(self, message_id: bytes) -> PendingMessage:
        return self.escrow.get_message(message_id)

    def pending_sent_by(self, sender: bytes) -> List[Tuple[bytes, PendingMessage]]:
        return self.escrow.pending_sent_by(sender)

    def pending_for(self, recipient: bytes) -> List[Tuple[bytes, PendingMessage]]:
        return self.escrow.pending_for(recipient)

    def balance_of(self, account: bytes) -> int:
        return self.store.balance_of(account)

    # ── funding

    def airdrop(self, account: bytes, amount: int) -> int:
        """Mint funds into an account (dev faucet). Returns the new balance."""
        account = require_identity(account, "account")
        amount = require_u64(amount, "amount")
        with self.store.transaction():
            balance = self.store.balance_of(account) + amount
            self.store.commit({}, {account: balance})
        logger.info("airdrop %d to %s", amount, _short(account))
        return balance

    # ── internals

    def _execute(self, op: str, caller: bytes, build: Callable[[], Effect]) -> Effect:
        try:
            with self.store.transaction():
                effect = build()
                balances = self._settle(effect.transfers)
                self.store.commit(effect.writes, balances, creates=effect.creates)
        except PaymsgError as e:
            logger.info("%s by %s rejected: %s %s", op, _short(caller), e.kind, e)
            raise
        moved = sum(t.amount for t in effect.transfers)
        touched = len(effect.writes) + len(effect.creates)
        logger.info("%s by %s committed (%d records, %d moved)", op, _short(caller), touched, moved)
        return effect

    def _settle(self, transfers: List[Transfer]) -> Dict[bytes, int]:
        balances: Dict[bytes, int] = {}
        for t in transfers:
            available = balances.get(t.source, self.store.balance_of(t.source))
            if available < t.amount:
                raise InsufficientFunds(f"account holds {available}, needs {t.amount}")
            balances[t.source] = available - t.amount
            balances[t.destination] = balances.get(t.destination, self.store.balance_of(t.destination)) + t.amount
        return balances

    def close(self) -> None:
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def _int(params: Dict[str, str], name: str) -> int:
    try:
        return int(params[name])
    except KeyError:
        raise InvalidArgument(f"missing param: {name}")
    except ValueError:
        raise InvalidArgument(f"param {name} is not an integer")


def _bytes(params: Dict[str, str], name: str) -> bytes:
    if name not in params:
        raise InvalidArgument(f"missing param: {name}")
    return b64url_decode(params[name])


def _text(params: Dict[str, str], name: str) -> str:
    if name not in params:
        raise InvalidArgument(f"missing param: {name}")
    return params[name]
