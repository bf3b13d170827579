"""Root conftest — shared test configuration."""

import os

# Keep tests off any real ledger, venue or database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("LEDGER_RPC_URL", "http://ledger.invalid")
os.environ.setdefault("PAYOUT_GATEWAY_URL", "http://gateway.invalid")
os.environ.setdefault("SWAP_VENUE_URL", "http://venue.invalid")
