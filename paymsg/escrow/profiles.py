# paymsg/escrow/profiles.py
from dataclasses import replace

from paymsg.core.access import require_authorized
from paymsg.core.address import profile_address
from paymsg.core.errors import AlreadyExists, NotFound
from paymsg.core.layout import decode_profile, encode_profile
from paymsg.core.types import Effect, Profile, require_identity, require_u64
from paymsg.storage import RecordStore


class ProfileRegistry:
    """
    Owns the price record of each recipient identity.
    One Profile per owner, enforced only by its derived address being taken.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def register_profile(self, owner: bytes, price: int, now: int = 0) -> Effect:
        owner = require_identity(owner, "owner")
        price = require_u64(price, "price")
        address = profile_address(owner)
        if self.store.exists(address):
            raise AlreadyExists("profile already registered")

        profile = Profile(owner=owner, price=price, created_at=now)
        return Effect(creates={address: encode_profile(profile)})

    def update_price(self, caller: bytes, owner: bytes, new_price: int) -> Effect:
        new_price = require_u64(new_price, "price")
        profile = self.get_profile(owner)
        require_authorized(caller, profile.owner, role="profile owner")

        updated = replace(profile, price=new_price)
        return Effect(writes={profile_address(profile.owner): encode_profile(updated)})

    def get_profile(self, owner: bytes) -> Profile:
        data = self.store.get(profile_address(owner))
        if data is None:
            raise NotFound("no profile for this identity")
        return decode_profile(data)

    def get_price(self, owner: bytes) -> int:
        return self.get_profile(owner).price
