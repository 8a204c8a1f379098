# saffeh/services/reservation_rules.py
"""
Reservation lifecycle rules, shared by the client state machine and the
sandbox server.

  PENDING ──► ACTIVE | CONFIRMED ──► COMPLETED
     │            │
     ├──► CANCELLED ◄┘   (from PENDING, ACTIVE, CONFIRMED)
     └──► EXPIRED  ◄──── (from PENDING: checkout abandoned;
                          from ACTIVE: window lapsed unused)

CANCELLED, COMPLETED and EXPIRED are terminal. UNKNOWN has no edges.
"""

from saffeh.schemas.reservation import ReservationStatus as S

TRANSITIONS: dict[S, frozenset[S]] = {
    S.PENDING: frozenset({S.ACTIVE, S.CONFIRMED, S.CANCELLED, S.EXPIRED}),
    S.CONFIRMED: frozenset({S.ACTIVE, S.COMPLETED, S.CANCELLED}),
    S.ACTIVE: frozenset({S.CONFIRMED, S.COMPLETED, S.CANCELLED, S.EXPIRED}),
    S.CANCELLED: frozenset(),
    S.COMPLETED: frozenset(),
    S.EXPIRED: frozenset(),
    S.UNKNOWN: frozenset(),
}

TERMINAL = frozenset({S.CANCELLED, S.COMPLETED, S.EXPIRED})
PAID = frozenset({S.ACTIVE, S.CONFIRMED})
CANCELLABLE = frozenset({S.PENDING, S.ACTIVE, S.CONFIRMED})
IN_FLIGHT = CANCELLABLE


def can_transition(current: S, target: S) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def is_terminal(status: S) -> bool:
    return status in TERMINAL


def is_reachable(current: S, target: S) -> bool:
    """
    True when `target` can be reached from `current` along one or more edges.
    Polling may observe a later state without seeing the ones in between
    (e.g. PENDING → COMPLETED when payment and gate scan both happened).
    """
    seen = {current}
    frontier = [current]
    while frontier:
        state = frontier.pop()
        for nxt in TRANSITIONS.get(state, ()):
            if nxt == target:
                return True
            if nxt not in seen:
                seen.add(nxt)
                frontier.append(nxt)
    return False
