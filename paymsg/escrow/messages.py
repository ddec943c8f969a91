# paymsg/escrow/messages.py
from typing import List, Tuple

from paymsg.core.access import require_authorized
from paymsg.core.address import message_address
from paymsg.core.constants import MAX_CONTENT_LEN, RECIPIENT_OFFSET, SENDER_OFFSET
from paymsg.core.errors import AlreadyExists, InvalidArgument, NotFound, Underpriced
from paymsg.core.layout import MESSAGE_DISC, decode_message, encode_message
from paymsg.core.types import Effect, Message, PendingMessage, Transfer, require_identity, require_u64
from paymsg.storage import RecordStore

from .profiles import ProfileRegistry


class MessageEscrow:
    """
    Lifecycle of a paid message: Nonexistent -> Pending (send) -> Nonexistent (read and claim).

    The escrowed amount is held by the message address itself. Claiming pays
    it to the recipient and deletes the record inside the same Effect, and no
    other path ever touches either. Reads return PendingMessage views; the
    content only leaves through read_and_claim.
    """

    def __init__(self, store: RecordStore, registry: ProfileRegistry, max_content_len: int = MAX_CONTENT_LEN):
        self.store = store
        self.registry = registry
        self.max_content_len = max_content_len

    def send_message(
        self,
        sender: bytes,
        recipient: bytes,
        nonce: int,
        amount: int,
        content: str,
        now: int = 0,
    ) -> Effect:
        sender = require_identity(sender, "sender")
        recipient = require_identity(recipient, "recipient")
        nonce = require_u64(nonce, "nonce")
        amount = require_u64(amount, "amount")
        if not isinstance(content, str):
            raise InvalidArgument("content must be text")
        size = len(content.encode("utf-8"))
        if size > self.max_content_len:
            raise InvalidArgument(f"content is {size} bytes, max {self.max_content_len}")

        price = self.registry.get_price(recipient)
        if amount < price:
            raise Underpriced(f"amount {amount} is below the recipient's price {price}")

        address = message_address(recipient, sender, nonce)
        if self.store.exists(address):
            raise AlreadyExists("a message with this nonce is still pending")

        msg = Message(
            sender=sender,
            recipient=recipient,
            nonce=nonce,
            amount=amount,
            content=content,
            created_at=now,
        )
        return Effect(
            creates={address: encode_message(msg)},
            transfers=[Transfer(source=sender, destination=address, amount=amount)],
        )

    def read_and_claim(self, caller: bytes, message_id: bytes) -> Effect:
        msg = self._load(message_id)
        require_authorized(caller, msg.recipient, role="recipient")

        return Effect(
            writes={message_id: None},
            transfers=[Transfer(source=message_id, destination=msg.recipient, amount=msg.amount)],
            result=msg.content,
        )

    def get_message(self, message_id: bytes) -> PendingMessage:
        return self._load(message_id).sealed()

    def pending_sent_by(self, sender: bytes) -> List[Tuple[bytes, PendingMessage]]:
        return self._scan(SENDER_OFFSET, require_identity(sender, "sender"))

    def pending_for(self, recipient: bytes) -> List[Tuple[bytes, PendingMessage]]:
        return self._scan(RECIPIENT_OFFSET, require_identity(recipient, "recipient"))

    def _load(self, message_id: bytes) -> Message:
        data = self.store.get(message_id)
        if data is None:
            raise NotFound("no pending message at this address")
        if data[:8] != MESSAGE_DISC:
            raise NotFound("address does not hold a message")
        return decode_message(data)

    def _scan(self, offset: int, identity: bytes) -> List[Tuple[bytes, PendingMessage]]:
        found = []
        for address, data in self.store.scan(offset, identity):
            if data[:8] == MESSAGE_DISC:
                found.append((address, decode_message(data).sealed()))
        found.sort(key=lambda pair: (pair[1].created_at, pair[1].nonce))
        return found
