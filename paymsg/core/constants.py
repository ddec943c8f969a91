# paymsg/core/constants.py
PROFILE_SEED = b"profile"
MESSAGE_SEED = b"message"

IDENTITY_LEN = 32
MAX_CONTENT_LEN = 256           # bytes of UTF-8, not characters
U64_MAX = 2**64 - 1

# Byte offset of the sender identity inside an encoded Message record.
# External indexers filter on it; never move it.
SENDER_OFFSET = 8
RECIPIENT_OFFSET = SENDER_OFFSET + IDENTITY_LEN
