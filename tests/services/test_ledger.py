# tests/services/test_ledger.py
import asyncio
from datetime import date

import pytest

from common.errors import BusinessRuleError, InvalidArgumentsError, NotFoundError
from common.models import BoardingStatus, ComplaintStatus, PaymentRecord, PaymentStatus, TicketStatus
from services.ledger import Ledger, build_fleet, load_contacts_file
from services.ticket_codes import verify_ticket_code
from constants.routes import BASE_ROUTES
from tests._fakes import TEST_SECRET, make_route


async def _paid(ledger, ref="CRQ-1", amount=1500.0, phone="254712345678"):
    await ledger.record_payment(PaymentRecord(reference=ref, phone_number=phone, amount=amount))
    await ledger.set_payment_status(ref, PaymentStatus.COMPLETED, "ok")
    return ref


# ---------- seeding ----------
def test_build_fleet_has_both_directions_with_reversed_stops():
    fleet = build_fleet(seed=42)
    assert len(fleet) == 2 * len(BASE_ROUTES)
    fwd, rev = fleet[0], fleet[1]
    assert (fwd.id, rev.id) == ("R001", "R002")
    assert (fwd.origin, fwd.destination) == (rev.destination, rev.origin)
    assert rev.stops == list(reversed(fwd.stops))
    for r in fleet:
        assert r.capacity == 45
        assert 30 <= r.available_seats <= 39


def test_build_fleet_is_deterministic_for_a_seed():
    a = [r.available_seats for r in build_fleet(seed=7)]
    b = [r.available_seats for r in build_fleet(seed=7)]
    assert a == b


def test_load_contacts_file(tmp_path):
    p = tmp_path / "contacts.yaml"
    p.write_text(
        "- phone_number: '254700000001'\n  name: Wanjiru\n  total_trips: 3\n"
        "- name: no number\n",
        encoding="utf-8",
    )
    contacts = load_contacts_file(str(p))
    assert [c.phone_number for c in contacts] == ["254700000001"]
    assert contacts[0].total_trips == 3


def test_load_contacts_file_missing_is_empty(tmp_path):
    assert load_contacts_file(str(tmp_path / "nope.yaml")) == []


def test_constructor_rejects_invalid_route():
    with pytest.raises(InvalidArgumentsError):
        Ledger(routes=[make_route(capacity=10, available=11)])


# ---------- search ----------
@pytest.mark.asyncio
async def test_search_matches_origin_and_destination(ledger):
    found = await ledger.search_routes("Nairobi", "Kisumu")
    assert [r.id for r in found] == ["R001"]


@pytest.mark.asyncio
async def test_search_matches_intermediate_stop(ledger):
    found = await ledger.search_routes("nairobi", "nakuru")
    assert [r.id for r in found] == ["R001"]


@pytest.mark.asyncio
async def test_search_with_empty_sides_matches_all(ledger):
    assert len(await ledger.search_routes("", "")) == 3


@pytest.mark.asyncio
async def test_returned_routes_are_copies(ledger):
    r = await ledger.get_route("R001")
    r.available_seats = 0
    assert await ledger.check_seats("R001") == 30


# ---------- admin route edits ----------
@pytest.mark.asyncio
async def test_add_route_assigns_next_id(ledger):
    r = await ledger.add_route(origin="Nakuru", destination="Eldoret", departure_time="10:00 AM", price=700)
    assert r.id == "R004"
    assert r.available_seats == r.capacity == 45


@pytest.mark.asyncio
async def test_update_route_capacity_keeps_sold_seats(ledger):
    # 45 capacity, 30 available -> 15 sold
    r = await ledger.update_route("R001", capacity=50)
    assert (r.capacity, r.available_seats) == (50, 35)


@pytest.mark.asyncio
async def test_update_route_rejects_invariant_violation(ledger):
    with pytest.raises(InvalidArgumentsError):
        await ledger.update_route("R001", available_seats=46)
    with pytest.raises(InvalidArgumentsError):
        await ledger.update_route("R001", capacity=10)   # 15 already sold
    assert await ledger.check_seats("R001") == 30


@pytest.mark.asyncio
async def test_update_route_price_and_delete(ledger):
    r = await ledger.update_route_price("R001", 1800)
    assert r.price == 1800
    await ledger.delete_route("R001")
    with pytest.raises(NotFoundError):
        await ledger.get_route("R001")


# ---------- ticket issuance ----------
@pytest.mark.asyncio
async def test_issue_ticket_decrements_and_assigns_seat(ledger):
    ref = await _paid(ledger)
    t = await ledger.issue_ticket(passenger_name="Jane", route_id="R001", payment_reference=ref,
                                  travel_date=date(2025, 3, 1), user_id="u1")
    assert await ledger.check_seats("R001") == 29
    assert t.seat_number == 45 - 29
    assert t.status == TicketStatus.booked
    assert t.boarding_status == BoardingStatus.pending
    assert t.route_snapshot.id == "R001"
    assert verify_ticket_code(TEST_SECRET, t.code_payload) == t.id
    assert (await ledger.get_payment(ref)).consumed_by_ticket == t.id


@pytest.mark.asyncio
async def test_settled_payment_status_is_final(ledger):
    ref = await _paid(ledger)
    kept = await ledger.set_payment_status(ref, PaymentStatus.PENDING, "stale poll")
    assert kept.status == PaymentStatus.COMPLETED and kept.message == "ok"
    await ledger.set_payment_status(ref, PaymentStatus.FAILED, "late failure")
    assert (await ledger.get_payment(ref)).status == PaymentStatus.COMPLETED

    await ledger.record_payment(PaymentRecord(reference="CRQ-2", phone_number="2547", amount=1500))
    await ledger.set_payment_status("CRQ-2", PaymentStatus.FAILED, "cancelled")
    await ledger.set_payment_status("CRQ-2", PaymentStatus.COMPLETED, "ok")
    assert (await ledger.get_payment("CRQ-2")).status == PaymentStatus.FAILED


@pytest.mark.asyncio
async def test_issue_ticket_requires_completed_payment(ledger):
    await ledger.record_payment(PaymentRecord(reference="CRQ-9", phone_number="254700000000", amount=1500))
    with pytest.raises(BusinessRuleError):
        await ledger.issue_ticket(passenger_name="Jane", route_id="R001", payment_reference="CRQ-9")
    assert await ledger.check_seats("R001") == 30


@pytest.mark.asyncio
async def test_one_payment_backs_one_ticket(ledger):
    ref = await _paid(ledger)
    await ledger.issue_ticket(passenger_name="Jane", route_id="R001", payment_reference=ref)
    with pytest.raises(BusinessRuleError, match="already been used"):
        await ledger.issue_ticket(passenger_name="John", route_id="R001", payment_reference=ref)
    assert await ledger.check_seats("R001") == 29


@pytest.mark.asyncio
async def test_underpayment_is_refused(ledger):
    ref = await _paid(ledger, amount=1000)
    with pytest.raises(BusinessRuleError):
        await ledger.issue_ticket(passenger_name="Jane", route_id="R001", payment_reference=ref)


@pytest.mark.asyncio
async def test_full_bus_needs_refund(ledger):
    ref = await _paid(ledger)
    with pytest.raises(BusinessRuleError) as ei:
        await ledger.issue_ticket(passenger_name="Jane", route_id="R003", payment_reference=ref)
    assert ei.value.requires_refund is True
    assert ei.value.to_payload()["requiresRefund"] is True
    assert await ledger.check_seats("R003") == 0
    assert (await ledger.get_payment(ref)).consumed_by_ticket is None


@pytest.mark.asyncio
async def test_concurrent_bookings_never_oversell():
    ledger = Ledger(routes=[make_route(capacity=5, available=3)], ticket_secret=TEST_SECRET)
    refs = [await _paid(ledger, ref=f"CRQ-{i}") for i in range(6)]

    async def book(ref):
        try:
            return await ledger.issue_ticket(passenger_name=ref, route_id="R001", payment_reference=ref)
        except BusinessRuleError:
            return None

    results = await asyncio.gather(*(book(r) for r in refs))
    issued = [t for t in results if t]
    assert len(issued) == 3
    assert sorted(t.seat_number for t in issued) == [3, 4, 5]
    assert await ledger.check_seats("R001") == 0


# ---------- boarding ----------
@pytest.mark.asyncio
async def test_board_ticket_once(ledger):
    ref = await _paid(ledger)
    t = await ledger.issue_ticket(passenger_name="Jane", route_id="R001", payment_reference=ref)
    boarded = await ledger.board_ticket(t.id)
    assert boarded.boarding_status == BoardingStatus.boarded
    assert boarded.boarded_at is not None
    with pytest.raises(BusinessRuleError):
        await ledger.board_ticket(t.id)


@pytest.mark.asyncio
async def test_cancelled_ticket_keeps_seat_and_cannot_board(ledger):
    ref = await _paid(ledger)
    t = await ledger.issue_ticket(passenger_name="Jane", route_id="R001", payment_reference=ref)
    await ledger.cancel_ticket(t.id)
    assert await ledger.check_seats("R001") == 29
    with pytest.raises(BusinessRuleError):
        await ledger.board_ticket(t.id)


# ---------- complaints ----------
@pytest.mark.asyncio
async def test_complaint_lifecycle(ledger):
    c = await ledger.log_complaint(customer_name="Jane", issue="Bus left early", severity="high")
    assert c.id == "CMP-0001"
    assert [x.id for x in await ledger.list_complaints("open")] == [c.id]

    resolved = await ledger.resolve_complaint(c.id, "Refund issued")
    assert resolved.status == ComplaintStatus.resolved
    assert resolved.resolution_message == "Refund issued"
    assert await ledger.list_complaints("open") == []

    with pytest.raises(BusinessRuleError):
        await ledger.resolve_complaint(c.id, "again")


@pytest.mark.asyncio
async def test_resolve_unknown_complaint_changes_nothing(ledger):
    c = await ledger.log_complaint(customer_name="Jane", issue="Late")
    with pytest.raises(NotFoundError):
        await ledger.resolve_complaint("CMP-9999", "x")
    (only,) = await ledger.list_complaints()
    assert only.id == c.id and only.status == ComplaintStatus.open


@pytest.mark.asyncio
async def test_log_complaint_rejects_bad_severity(ledger):
    with pytest.raises(InvalidArgumentsError):
        await ledger.log_complaint(customer_name="Jane", issue="Late", severity="urgent")


# ---------- reports ----------
@pytest.mark.asyncio
async def test_financial_report_and_manifest(ledger):
    for i, name in enumerate(["Jane", "John"]):
        ref = await _paid(ledger, ref=f"CRQ-{i}")
        await ledger.issue_ticket(passenger_name=name, route_id="R001", payment_reference=ref,
                                  travel_date=date(2025, 3, 1))

    report = await ledger.financial_report()
    assert report["totalRevenue"] == 3000
    assert report["ticketCount"] == 2
    assert report["averagePrice"] == 1500

    manifest = await ledger.route_manifest("R001", date(2025, 3, 1))
    assert [p["passengerName"] for p in manifest["passengers"]] == ["Jane", "John"]
    assert manifest["boarded"] == 0
    assert (await ledger.route_manifest("R001", date(2025, 3, 2)))["total"] == 0


@pytest.mark.asyncio
async def test_financial_report_date_window_excludes_other_days(ledger):
    ref = await _paid(ledger)
    await ledger.issue_ticket(passenger_name="Jane", route_id="R001", payment_reference=ref)
    empty = await ledger.financial_report(date(2000, 1, 1), date(2000, 1, 2))
    assert empty["ticketCount"] == 0 and empty["averagePrice"] == 0


@pytest.mark.asyncio
async def test_occupancy_stats(ledger):
    stats = await ledger.occupancy_stats()
    assert stats["totalCapacity"] == 135
    assert stats["totalBooked"] == 15 + 15 + 45
    assert stats["utilization"] == "55.6%"
    assert stats["busiestRoutes"][0]["routeId"] == "R003"
