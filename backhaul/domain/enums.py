"""Domain enumerations and state-transition rules."""

import enum


class RouteStatus(str, enum.Enum):
    INITIATED = "INITIATED"
    OPEN = "OPEN"
    BOOKED = "BOOKED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


# Forward-only; CANCELLED is reachable from every non-terminal status.
ROUTE_TRANSITIONS: dict[RouteStatus, set[RouteStatus]] = {
    RouteStatus.INITIATED: {
        RouteStatus.OPEN,
        RouteStatus.EXPIRED,
        RouteStatus.CANCELLED,
    },
    RouteStatus.OPEN: {
        RouteStatus.BOOKED,
        RouteStatus.EXPIRED,
        RouteStatus.CANCELLED,
    },
    RouteStatus.BOOKED: {RouteStatus.COMPLETED, RouteStatus.CANCELLED},
    RouteStatus.COMPLETED: set(),
    RouteStatus.CANCELLED: set(),
    RouteStatus.EXPIRED: set(),
}


class BidStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    WITHDRAWN = "WITHDRAWN"


# PENDING is the only non-terminal bid status.
BID_TRANSITIONS: dict[BidStatus, set[BidStatus]] = {
    BidStatus.PENDING: {
        BidStatus.ACCEPTED,
        BidStatus.REJECTED,
        BidStatus.WITHDRAWN,
        BidStatus.EXPIRED,
    },
    BidStatus.ACCEPTED: set(),
    BidStatus.REJECTED: set(),
    BidStatus.EXPIRED: set(),
    BidStatus.WITHDRAWN: set(),
}

# Bids that still block route deletion and count towards bid statistics.
LIVE_BID_STATUSES = frozenset({BidStatus.PENDING, BidStatus.ACCEPTED})


class PriceConfidence(str, enum.Enum):
    HISTORICAL = "HISTORICAL"  # learned from accepted bids
    ESTIMATED = "ESTIMATED"  # too little history, base-rate band
    NO_HISTORY = "NO_HISTORY"  # nothing comparable, base-rate band
