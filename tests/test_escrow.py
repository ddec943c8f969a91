# tests/test_escrow.py
import pytest

from paymsg.core.address import message_address, profile_address
from paymsg.core.errors import AlreadyExists, InvalidArgument, NotFound, Unauthorized, Underpriced
from paymsg.core.types import Transfer
from paymsg.escrow import MessageEscrow, ProfileRegistry
from paymsg.storage import MemoryStorage

OWNER = bytes([10]) * 32
SENDER = bytes([20]) * 32
OTHER = bytes([30]) * 32


@pytest.fixture
def store():
    return MemoryStorage()


@pytest.fixture
def registry(store):
    return ProfileRegistry(store)


@pytest.fixture
def escrow(store, registry):
    return MessageEscrow(store, registry)


def apply(store, effect):
    # test double for the runtime: records only, balances ignored
    store.commit(effect.writes, {}, creates=effect.creates)


def test_register_describes_one_create(store, registry):
    effect = registry.register_profile(OWNER, 500, now=9)
    assert list(effect.creates) == [profile_address(OWNER)]
    assert effect.writes == {}
    assert effect.transfers == []
    # nothing is written until the effect is applied
    assert not store.exists(profile_address(OWNER))

    apply(store, effect)
    assert registry.get_price(OWNER) == 500
    assert registry.get_profile(OWNER).created_at == 9


@pytest.mark.parametrize("price", [0, 1, 1_000_000, 2**64 - 1])
def test_register_then_get_price(store, registry, price):
    apply(store, registry.register_profile(OWNER, price))
    assert registry.get_price(OWNER) == price


def test_register_twice_already_exists(store, registry):
    apply(store, registry.register_profile(OWNER, 100))
    with pytest.raises(AlreadyExists):
        registry.register_profile(OWNER, 999)
    assert registry.get_price(OWNER) == 100


def test_register_negative_price(registry):
    with pytest.raises(InvalidArgument):
        registry.register_profile(OWNER, -1)


def test_get_price_missing(registry):
    with pytest.raises(NotFound):
        registry.get_price(OWNER)


def test_update_price_by_owner(store, registry):
    apply(store, registry.register_profile(OWNER, 100, now=5))
    apply(store, registry.update_price(OWNER, OWNER, 250))
    profile = registry.get_profile(OWNER)
    assert profile.price == 250
    assert profile.created_at == 5


def test_update_price_by_stranger(store, registry):
    apply(store, registry.register_profile(OWNER, 100))
    with pytest.raises(Unauthorized):
        registry.update_price(OTHER, OWNER, 1)
    assert registry.get_price(OWNER) == 100


def test_update_price_missing_profile(registry):
    with pytest.raises(NotFound):
        registry.update_price(OWNER, OWNER, 1)


def test_send_describes_create_and_escrow_transfer(store, registry, escrow):
    apply(store, registry.register_profile(OWNER, 1_000_000))
    effect = escrow.send_message(SENDER, OWNER, 1, 2_000_000, "hello there", now=3)

    address = message_address(OWNER, SENDER, 1)
    assert list(effect.creates) == [address]
    assert effect.transfers == [Transfer(SENDER, address, 2_000_000)]
    assert effect.result is None


def test_send_underpriced(store, registry, escrow):
    apply(store, registry.register_profile(OWNER, 1_000_000))
    with pytest.raises(Underpriced):
        escrow.send_message(SENDER, OWNER, 1, 999_999, "cheap")


def test_send_at_exact_price(store, registry, escrow):
    apply(store, registry.register_profile(OWNER, 10))
    assert escrow.send_message(SENDER, OWNER, 1, 10, "ok").transfers[0].amount == 10


def test_send_to_unregistered(escrow):
    with pytest.raises(NotFound):
        escrow.send_message(SENDER, OWNER, 1, 10, "anyone there?")


def test_send_content_too_long(store, registry, escrow):
    apply(store, registry.register_profile(OWNER, 0))
    escrow.send_message(SENDER, OWNER, 1, 0, "x" * 256)
    with pytest.raises(InvalidArgument):
        escrow.send_message(SENDER, OWNER, 1, 0, "x" * 257)


def test_send_nonce_reuse_while_pending(store, registry, escrow):
    apply(store, registry.register_profile(OWNER, 0))
    apply(store, escrow.send_message(SENDER, OWNER, 1, 5, "first"))
    with pytest.raises(AlreadyExists):
        escrow.send_message(SENDER, OWNER, 1, 5, "second")

    apply(store, escrow.send_message(SENDER, OWNER, 2, 5, "second"))
    assert escrow.get_message(message_address(OWNER, SENDER, 1)).content_len == len("first")
    assert escrow.get_message(message_address(OWNER, SENDER, 2)).content_len == len("second")


def test_claim_describes_payout_delete_and_content(store, registry, escrow):
    apply(store, registry.register_profile(OWNER, 0))
    apply(store, escrow.send_message(SENDER, OWNER, 4, 77, "secret"))
    address = message_address(OWNER, SENDER, 4)

    effect = escrow.read_and_claim(OWNER, address)
    assert effect.writes == {address: None}
    assert effect.transfers == [Transfer(address, OWNER, 77)]
    assert effect.result == "secret"


def test_claim_by_stranger(store, registry, escrow):
    apply(store, registry.register_profile(OWNER, 0))
    apply(store, escrow.send_message(SENDER, OWNER, 4, 77, "secret"))
    address = message_address(OWNER, SENDER, 4)

    with pytest.raises(Unauthorized):
        escrow.read_and_claim(SENDER, address)
    assert store.exists(address)


def test_claim_missing(escrow):
    with pytest.raises(NotFound):
        escrow.read_and_claim(OWNER, bytes(32))


def test_claim_on_profile_address_is_not_found(store, registry, escrow):
    apply(store, registry.register_profile(OWNER, 0))
    with pytest.raises(NotFound):
        escrow.read_and_claim(OWNER, profile_address(OWNER))


def test_pending_scans(store, registry, escrow):
    apply(store, registry.register_profile(OWNER, 0))
    apply(store, registry.register_profile(OTHER, 0))
    apply(store, escrow.send_message(SENDER, OWNER, 1, 1, "a", now=1))
    apply(store, escrow.send_message(SENDER, OTHER, 2, 1, "b", now=2))
    apply(store, escrow.send_message(OTHER, OWNER, 3, 1, "c", now=3))

    assert [m.nonce for _, m in escrow.pending_sent_by(SENDER)] == [1, 2]
    assert [m.nonce for _, m in escrow.pending_for(OWNER)] == [1, 3]
    assert escrow.pending_sent_by(OWNER) == []


def test_reads_never_reveal_content(store, registry, escrow):
    apply(store, registry.register_profile(OWNER, 0))
    apply(store, escrow.send_message(SENDER, OWNER, 1, 9, "for your eyes only", now=4))
    address = message_address(OWNER, SENDER, 1)

    views = [escrow.get_message(address)]
    views += [m for _, m in escrow.pending_for(OWNER)]
    views += [m for _, m in escrow.pending_sent_by(SENDER)]
    for view in views:
        assert not hasattr(view, "content")
        assert view.amount == 9
        assert view.content_len == len("for your eyes only")
        assert "for your eyes only" not in repr(view)

    assert escrow.read_and_claim(OWNER, address).result == "for your eyes only"
