"""
Oracle reading kernel.

This module is intentionally small:
- The functional core decides whether a reading is acceptable (feed identity,
  price validity, freshness) deterministically.
- Fetching the reading is the feed's job; the pool only consumes it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .errors import FeedMismatchError, InvalidPriceError, StalePriceError
from .fixed_point import MAX_PREC


DEFAULT_MAX_STALENESS_SECONDS = 60


@dataclass(frozen=True)
class PriceReading:
    """A ``(price, timestamp)`` pair; ``price`` is scaled to the working precision."""

    price: int
    timestamp: int

    def __post_init__(self) -> None:
        for name, v in (("price", self.price), ("timestamp", self.timestamp)):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if self.timestamp < 0:
            raise ValueError(f"timestamp must be non-negative: {self.timestamp}")


class PriceFeed(Protocol):
    """Price source for one asset. ``address`` identifies the feed."""

    address: str

    def latest(self) -> PriceReading: ...


class ManualPriceFeed:
    """In-memory feed whose reading is set explicitly (simulations, tests)."""

    def __init__(self, address: str, price: int = 0, timestamp: int = 0) -> None:
        self.address = address
        self._reading = PriceReading(price=price, timestamp=timestamp)

    def set(self, price: int, timestamp: int) -> None:
        self._reading = PriceReading(price=price, timestamp=timestamp)

    def latest(self) -> PriceReading:
        return self._reading

    def __repr__(self) -> str:
        return f"ManualPriceFeed({self.address!r}, price={self._reading.price}, ts={self._reading.timestamp})"


def is_fresh(timestamp: int, current_timestamp: int, max_staleness_seconds: int) -> bool:
    """Return True if ``|now - timestamp|`` is within the max staleness window."""
    if current_timestamp < 0:
        raise ValueError(f"current_timestamp must be non-negative: {current_timestamp}")
    if max_staleness_seconds <= 0:
        raise ValueError(f"max_staleness_seconds must be positive: {max_staleness_seconds}")
    return abs(current_timestamp - timestamp) <= max_staleness_seconds


def check_reading(reading: PriceReading, current_timestamp: int, max_staleness_seconds: int) -> PriceReading:
    """Validate a reading's price and freshness; returns it unchanged."""
    if reading.price <= 0 or reading.price > 10**MAX_PREC:
        raise InvalidPriceError(f"invalid oracle price: {reading.price}")
    if not is_fresh(reading.timestamp, current_timestamp, max_staleness_seconds):
        raise StalePriceError(
            f"price timestamp {reading.timestamp} is more than {max_staleness_seconds}s "
            f"away from {current_timestamp}"
        )
    return reading


def read_price(
    feed: PriceFeed,
    expected_address: str,
    current_timestamp: int,
    max_staleness_seconds: int = DEFAULT_MAX_STALENESS_SECONDS,
) -> PriceReading:
    """Read ``feed`` after checking it is the feed registered for the asset."""
    if feed.address != expected_address:
        raise FeedMismatchError(f"feed {feed.address} does not match registered oracle {expected_address}")
    return check_reading(feed.latest(), current_timestamp, max_staleness_seconds)
