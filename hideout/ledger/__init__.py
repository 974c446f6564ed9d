"""Security Ledger: bounded, append-only record of scan outcomes."""

from hideout.ledger.ledger import SecurityLedger
from hideout.ledger.models import LedgerEntry, LedgerQuery

__all__ = ["SecurityLedger", "LedgerEntry", "LedgerQuery"]
