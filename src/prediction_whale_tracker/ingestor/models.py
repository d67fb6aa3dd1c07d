"""Data models for the ingestor module."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Literal

# Placeholder maker for sources without a wallet concept.
ANONYMOUS_MAKER = "Anonymous"

# Last second representable as a datetime (9999-12-31T23:59:59Z).
MAX_TIMESTAMP = 253_402_300_799


def is_valid_timestamp(timestamp: int) -> bool:
    """Return True if ``timestamp`` is unix seconds within datetime range."""
    return 0 <= timestamp <= MAX_TIMESTAMP


class Platform(str, Enum):
    """Prediction-market venues the tracker polls."""

    POLYMARKET = "polymarket"
    KALSHI = "kalshi"

    @classmethod
    def parse(cls, value: "str | Platform") -> "Platform":
        """Resolve a platform from its name, case-insensitively."""
        if isinstance(value, Platform):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown platform: {value!r}") from None


@dataclass(frozen=True)
class Trade:
    """Canonical whale-trade record shared by every source.

    A Trade is created once by the normalizer, optionally tagged with a
    category, and never mutated afterwards. ``time`` is derived from
    ``timestamp`` so both always denote the same instant.
    """

    # Identity
    id: str  # transaction hash, or a composite fallback key
    platform: Platform

    # Trade details
    market: str  # human-readable market title
    outcome: str
    amount: Decimal  # USD notional
    side: Literal["BUY", "SELL"]
    timestamp: int  # unix seconds
    maker_address: str = ANONYMOUS_MAKER

    # Cross-references to the originating market
    slug: str = ""
    event_slug: str = ""
    condition_id: str = ""

    # Enrichment
    category: str | None = None
    side_inferred: bool = False  # True when the source has no taker direction

    def __post_init__(self) -> None:
        if not is_valid_timestamp(self.timestamp):
            raise ValueError(f"Timestamp out of range: {self.timestamp}")

    @property
    def time(self) -> str:
        """ISO-8601 UTC form of ``timestamp``."""
        return self.occurred_at.isoformat()

    @property
    def occurred_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=UTC)

    @property
    def is_buy(self) -> bool:
        """Return True if this is a buy trade."""
        return self.side == "BUY"

    @property
    def is_sell(self) -> bool:
        """Return True if this is a sell trade."""
        return self.side == "SELL"

    def maker_matches(self, address: str) -> bool:
        """Case-insensitive comparison against the maker address."""
        return self.maker_address.lower() == address.lower()

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dictionary for the stored history blob."""
        return {
            "id": self.id,
            "market": self.market,
            "outcome": self.outcome,
            "amount": str(self.amount),
            "side": self.side,
            "time": self.time,
            "timestamp": self.timestamp,
            "makerAddress": self.maker_address,
            "category": self.category,
            "slug": self.slug,
            "eventSlug": self.event_slug,
            "conditionId": self.condition_id,
            "platform": self.platform.value,
            "sideInferred": self.side_inferred,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Trade":
        """Deserialize from a stored dictionary.

        Args:
            data: Dictionary previously produced by ``to_dict``.

        Returns:
            Trade instance.

        Raises:
            ValueError: If a required field is missing or malformed.
        """
        try:
            trade_id = str(data["id"])
            amount = Decimal(str(data["amount"]))
            timestamp = int(data["timestamp"])
        except (KeyError, TypeError, ValueError, OverflowError, InvalidOperation) as e:
            raise ValueError(f"Malformed trade record: {e}") from e

        if not trade_id:
            raise ValueError("Malformed trade record: empty id")
        if not amount.is_finite() or amount < 0:
            raise ValueError(f"Malformed trade record: invalid amount {amount}")
        if not is_valid_timestamp(timestamp):
            raise ValueError(f"Malformed trade record: timestamp out of range {timestamp}")

        side_raw = str(data.get("side", "")).upper()
        if side_raw not in ("BUY", "SELL"):
            raise ValueError(f"Malformed trade record: invalid side {side_raw!r}")
        side: Literal["BUY", "SELL"] = "BUY" if side_raw == "BUY" else "SELL"

        category = data.get("category")
        return cls(
            id=trade_id,
            platform=Platform.parse(data.get("platform", Platform.POLYMARKET)),
            market=str(data.get("market", "")),
            outcome=str(data.get("outcome", "")),
            amount=amount,
            side=side,
            timestamp=timestamp,
            maker_address=str(data.get("makerAddress") or ANONYMOUS_MAKER),
            slug=str(data.get("slug") or ""),
            event_slug=str(data.get("eventSlug") or ""),
            condition_id=str(data.get("conditionId") or ""),
            category=str(category) if category else None,
            side_inferred=bool(data.get("sideInferred", False)),
        )
