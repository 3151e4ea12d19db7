"""Unit tests for route and bid status transitions (State Pattern)."""

from types import SimpleNamespace

import pytest

from backhaul.domain.entities import transition
from backhaul.domain.enums import BidStatus, RouteStatus
from backhaul.domain.errors import InvalidTransition


def _route(status):
    return SimpleNamespace(status=status)


class TestRouteStateMachine:
    # ── Valid transitions ─────────────────────────────────────────

    def test_initiated_to_open(self):
        route = _route(RouteStatus.INITIATED)
        transition(route, RouteStatus.OPEN)
        assert route.status == RouteStatus.OPEN

    def test_open_to_booked(self):
        route = _route(RouteStatus.OPEN)
        transition(route, RouteStatus.BOOKED)
        assert route.status == RouteStatus.BOOKED

    def test_open_to_cancelled(self):
        route = _route(RouteStatus.OPEN)
        transition(route, RouteStatus.CANCELLED)
        assert route.status == RouteStatus.CANCELLED

    def test_open_to_expired(self):
        route = _route(RouteStatus.OPEN)
        transition(route, RouteStatus.EXPIRED)
        assert route.status == RouteStatus.EXPIRED

    def test_booked_to_completed(self):
        route = _route(RouteStatus.BOOKED)
        transition(route, RouteStatus.COMPLETED)
        assert route.status == RouteStatus.COMPLETED

    def test_accepts_plain_string_status(self):
        route = _route("OPEN")
        transition(route, RouteStatus.BOOKED)
        assert route.status == RouteStatus.BOOKED

    # ── Invalid transitions ───────────────────────────────────────

    def test_booked_cannot_reopen(self):
        with pytest.raises(InvalidTransition):
            transition(_route(RouteStatus.BOOKED), RouteStatus.OPEN)

    def test_initiated_cannot_be_booked(self):
        with pytest.raises(InvalidTransition):
            transition(_route(RouteStatus.INITIATED), RouteStatus.BOOKED)

    @pytest.mark.parametrize(
        "terminal", [RouteStatus.COMPLETED, RouteStatus.CANCELLED, RouteStatus.EXPIRED]
    )
    def test_terminal_statuses_are_final(self, terminal):
        for target in RouteStatus:
            with pytest.raises(InvalidTransition):
                transition(_route(terminal), target)

    def test_error_carries_both_states(self):
        with pytest.raises(InvalidTransition) as exc_info:
            transition(_route(RouteStatus.COMPLETED), RouteStatus.OPEN)
        assert exc_info.value.current == "COMPLETED"
        assert exc_info.value.requested == "OPEN"
        assert exc_info.value.context["entity"] == "route"


class TestBidStateMachine:
    @pytest.mark.parametrize(
        "target",
        [BidStatus.ACCEPTED, BidStatus.REJECTED, BidStatus.WITHDRAWN, BidStatus.EXPIRED],
    )
    def test_pending_moves_to_any_terminal(self, target):
        bid = SimpleNamespace(status=BidStatus.PENDING)
        transition(bid, target)
        assert bid.status == target

    @pytest.mark.parametrize(
        "terminal",
        [BidStatus.ACCEPTED, BidStatus.REJECTED, BidStatus.WITHDRAWN, BidStatus.EXPIRED],
    )
    def test_terminal_bids_cannot_change(self, terminal):
        for target in BidStatus:
            with pytest.raises(InvalidTransition):
                transition(SimpleNamespace(status=terminal), target)

    def test_pending_to_pending_is_invalid(self):
        with pytest.raises(InvalidTransition):
            transition(SimpleNamespace(status=BidStatus.PENDING), BidStatus.PENDING)
