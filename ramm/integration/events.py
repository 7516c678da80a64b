"""
Audit events emitted by the pool engine.

Events are appended only after an operation commits (or, for failed trades and
rejected deposits, after the refund is decided), so the log never describes state
that was rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Dict, Iterator, List


@unique
class EventKind(Enum):
    TRADE_EXECUTED = "TradeExecuted"
    TRADE_FAILED = "TradeFailed"
    LIQUIDITY_DEPOSITED = "LiquidityDeposited"
    DEPOSIT_REJECTED = "DepositRejected"
    LIQUIDITY_WITHDRAWN = "LiquidityWithdrawn"
    ASSET_ADDED = "AssetAdded"
    POOL_INITIALIZED = "PoolInitialized"
    FEE_COLLECTOR_SET = "FeeCollectorSet"
    MIN_TRADE_AMOUNT_SET = "MinTradeAmountSet"
    DEPOSITS_ENABLED = "DepositsEnabled"
    DEPOSITS_DISABLED = "DepositsDisabled"
    FEES_COLLECTED = "FeesCollected"


@dataclass(frozen=True)
class AuditEvent:
    kind: EventKind
    timestamp: int
    data: Dict[str, Any] = field(default_factory=dict)


class EventLog:
    """Append-only, in-memory event log."""

    def __init__(self) -> None:
        self._events: List[AuditEvent] = []

    def emit(self, kind: EventKind, timestamp: int, **data: Any) -> AuditEvent:
        event = AuditEvent(kind=kind, timestamp=timestamp, data=data)
        self._events.append(event)
        return event

    def of_kind(self, kind: EventKind) -> List[AuditEvent]:
        return [e for e in self._events if e.kind is kind]

    def __iter__(self) -> Iterator[AuditEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)
