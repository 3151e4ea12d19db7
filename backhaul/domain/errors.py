"""
Domain error taxonomy.

Every business-rule violation is raised as a subclass of ``DomainError``
carrying a stable ``code`` and a ``context`` dict, so callers branch on the
type (or the code) instead of parsing messages.  The API layer maps each
class to an HTTP status in one place.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    code = "DOMAIN_ERROR"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(DomainError):
    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str | None = None):
        super().__init__(message or f"{field} is required", field=field)
        self.field = field


class RouteNotFound(DomainError):
    code = "ROUTE_NOT_FOUND"

    def __init__(self, route_id: Any):
        super().__init__(f"Route {route_id} not found", route_id=route_id)


class BidNotFound(DomainError):
    code = "BID_NOT_FOUND"

    def __init__(self, bid_id: Any):
        super().__init__(f"Bid {bid_id} not found", bid_id=bid_id)


class AccessDenied(DomainError):
    code = "ACCESS_DENIED"


class InvalidTransition(DomainError):
    code = "INVALID_TRANSITION"

    def __init__(self, entity: str, current: Any, requested: Any):
        current = getattr(current, "value", current)
        requested = getattr(requested, "value", requested)
        super().__init__(
            f"Cannot transition {entity} from {current} to {requested}",
            entity=entity,
            current=current,
            requested=requested,
        )
        self.current = current
        self.requested = requested


class DuplicatePendingBid(DomainError):
    code = "DUPLICATE_PENDING_BID"

    def __init__(self, route_id: Any, customer_id: Any):
        super().__init__(
            "Customer already has a pending bid on this route",
            route_id=route_id,
            customer_id=customer_id,
        )


class RouteNotBiddable(DomainError):
    code = "ROUTE_NOT_BIDDABLE"

    def __init__(self, route_id: Any, status: Any):
        status = getattr(status, "value", status)
        super().__init__(
            f"Route {route_id} is {status}; only OPEN routes accept bids",
            route_id=route_id,
            status=status,
        )


class ConflictError(DomainError):
    code = "CONFLICT"


class InvalidGeometry(DomainError):
    code = "INVALID_GEOMETRY"


class DependencyUnavailable(DomainError):
    code = "DEPENDENCY_UNAVAILABLE"

    def __init__(self, dependency: str, reason: str = ""):
        super().__init__(
            f"{dependency} unavailable" + (f": {reason}" if reason else ""),
            dependency=dependency,
        )
        self.dependency = dependency
