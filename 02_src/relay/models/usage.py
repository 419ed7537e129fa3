"""Usage accounting data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class UsageRecord:
    """Rolling token counters for one identity (chat or user id)."""

    identity: str
    updated: datetime  # UTC
    daily_tokens: int = 0
    monthly_tokens: int = 0
    total_tokens: int = 0
