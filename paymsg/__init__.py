# paymsg/__init__.py
"""
Paymsg: a paid-messaging escrow ledger.
A recipient advertises a price; a sender who pays at least that price attaches
a message; the funds stay in escrow until the recipient reads the message,
which releases the funds and deletes the record in one step.
"""

__version__ = "0.1.0-dev"
