"""Usage accounting module."""

from .ledger import IUsageLedger, UsageLedger, apply_charge
from .tokenizer import ITokenizer, TiktokenTokenizer

__all__ = ["IUsageLedger", "UsageLedger", "apply_charge", "ITokenizer", "TiktokenTokenizer"]
