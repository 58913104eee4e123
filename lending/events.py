"""
events.py - Loan Notifications

Events are just data, handlers are just functions:

    LoanEvent (core.py)   immutable notification record
    loan_originated()     build the event for a newly recorded loan
    loan_repaid()         build the event for a settled loan
    EventLog              ordered log + handler registry
    HandlerFailure        a handler that raised during delivery

The pool emits only after every effect of a call has been applied, so a
failed call never produces an event. The log rejects an event_id it has
already seen, so each call is delivered exactly once.

Handlers are isolated from each other and from the call that committed:
an exception in one handler is recorded, and delivery continues.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set

from .core import (
    Loan, LoanEvent, LendingError,
    EVENT_LOAN_ORIGINATED, EVENT_LOAN_REPAID,
)


# Handler type: (event) -> None
EventHandler = Callable[[LoanEvent], None]

# Subscribing under this key receives every event type.
ALL_EVENTS = "*"


@dataclass(frozen=True, slots=True)
class HandlerFailure:
    """A handler that raised while an event was being delivered."""
    event: LoanEvent
    handler: str
    error: Exception

    def __repr__(self) -> str:
        return f"HandlerFailure({self.handler} on {self.event.event_type}: {type(self.error).__name__}: {self.error})"


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


def loan_originated(loan: Loan) -> LoanEvent:
    return LoanEvent(
        event_type=EVENT_LOAN_ORIGINATED,
        borrower=loan.borrower,
        collateral_asset=loan.collateral_asset,
        collateral_id=loan.collateral_id,
        currency=loan.currency,
        principal=loan.principal,
        duration=loan.duration,
        interest=loan.interest,
        timestamp=loan.created_at,
        loan_index=loan.index,
    )


def loan_repaid(loan: Loan) -> LoanEvent:
    """Build the repaid event from a CLOSED loan record."""
    if loan.closed_at is None:
        raise ValueError(f"{loan!r} has not been settled")
    return LoanEvent(
        event_type=EVENT_LOAN_REPAID,
        borrower=loan.borrower,
        collateral_asset=loan.collateral_asset,
        collateral_id=loan.collateral_id,
        currency=loan.currency,
        principal=loan.principal,
        duration=loan.duration,
        interest=loan.interest,
        timestamp=loan.closed_at,
        loan_index=loan.index,
        penalty=loan.penalty_paid,
    )


class EventLog:
    """
    Append-only event log with per-type handler registry.

    Example:
        log = EventLog()
        log.register(EVENT_LOAN_REPAID, lambda e: print(e))
        log.register(ALL_EVENTS, indexer.ingest)
    """

    def __init__(self):
        self._events: List[LoanEvent] = []
        self._seen: Set[str] = set()
        self._handlers: Dict[str, List[EventHandler]] = {}
        self.handler_failures: List[HandlerFailure] = []

    def register(self, event_type: str, handler: EventHandler) -> None:
        """Register a handler for one event type, or ALL_EVENTS."""
        if event_type not in (EVENT_LOAN_ORIGINATED, EVENT_LOAN_REPAID, ALL_EVENTS):
            raise ValueError(f"Unknown event type: {event_type}")
        self._handlers.setdefault(event_type, []).append(handler)

    def emit(self, event: LoanEvent) -> List[HandlerFailure]:
        """
        Append an event and deliver it to its handlers, in registration order.

        Every handler receives the event. A handler that raises does not stop
        delivery to the rest; its exception is recorded in handler_failures.

        Returns:
            The failures from this delivery (empty if every handler returned)

        Raises:
            LendingError: If an event with the same event_id was already emitted.
        """
        if event.event_id in self._seen:
            raise LendingError(f"Event {event.event_id} already emitted")
        self._events.append(event)
        self._seen.add(event.event_id)

        failures = []
        handlers = self._handlers.get(event.event_type, []) + self._handlers.get(ALL_EVENTS, [])
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                failures.append(HandlerFailure(event, _handler_name(handler), e))
        self.handler_failures.extend(failures)
        return failures

    def events(
        self,
        event_type: Optional[str] = None,
        borrower: Optional[str] = None,
    ) -> List[LoanEvent]:
        """Emitted events in order, optionally filtered."""
        return [
            e for e in self._events
            if (event_type is None or e.event_type == event_type)
            and (borrower is None or e.borrower == borrower)
        ]

    def __len__(self) -> int:
        return len(self._events)
