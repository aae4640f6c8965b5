# estatehub/services/lifecycle.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, joinedload
from sqlalchemy.orm.attributes import set_committed_value

from ..auth import Principal
from ..db import atomic
from ..domain.audit import audit_write
from ..errors import AlreadyCancelled, Forbidden, InvalidState, NotFound
from ..models import Booking, BookingStatus, Plot, PlotStatus, Project, Sale, utcnow
from .ownership import must_get_plot
from .tenant_scope import in_scope

log = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Plot lifecycle
# -----------------------------------------------------------------------------
#   AVAILABLE --book--> BOOKED --sell--> SOLD
#   BOOKED --cancel--> AVAILABLE
#
# Any (action, status) pair missing from TRANSITIONS is rejected, which is
# what makes SOLD terminal. Plot.status is written only through _move_plot().
# -----------------------------------------------------------------------------

BOOK = "book"
CANCEL = "cancel"
SELL = "sell"

TRANSITIONS: dict[tuple[str, PlotStatus], PlotStatus] = {
    (BOOK, PlotStatus.AVAILABLE): PlotStatus.BOOKED,
    (CANCEL, PlotStatus.BOOKED): PlotStatus.AVAILABLE,
    (SELL, PlotStatus.BOOKED): PlotStatus.SOLD,
}

_REJECT_MESSAGES = {
    BOOK: "Plot is not available for booking",
    CANCEL: "Plot is not in a cancellable state",
    SELL: "Only booked plots can be sold",
}


def next_status(action: str, current: str | PlotStatus) -> PlotStatus:
    try:
        cur = PlotStatus(current)
    except ValueError:
        raise InvalidState(f"Unknown plot status {current!r}")

    target = TRANSITIONS.get((action, cur))
    if target is None:
        raise InvalidState(_REJECT_MESSAGES.get(action, "Transition not allowed"), detail={"status": cur.value, "action": action})
    return target


def _move_plot(db: Session, plot: Plot, action: str) -> PlotStatus:
    """
    Compare-and-set the plot status. Zero rows updated means another
    transaction moved the plot after we read it.
    """
    current = PlotStatus(plot.status)
    target = next_status(action, current)

    res = db.execute(
        update(Plot)
        .where(Plot.id == int(plot.id), Plot.status == current.value)
        .values(status=target.value)
        .execution_options(synchronize_session=False)
    )
    if int(res.rowcount or 0) != 1:
        log.info("plot transition lost race", extra={"plot_id": int(plot.id), "error_kind": "invalid_state"})
        raise InvalidState(_REJECT_MESSAGES[action], detail={"status": "changed_concurrently", "action": action})

    set_committed_value(plot, "status", target.value)
    log.info("plot %s: %s -> %s", action, current.value, target.value, extra={"plot_id": int(plot.id)})
    return target


def _booking_after(b: Booking) -> dict:
    return {
        "plot_id": int(b.plot_id),
        "status": str(b.status),
        "client_name": b.client_name,
        "amount": float(b.amount),
    }


def _active_booking(db: Session, plot_id: int) -> Optional[Booking]:
    return db.scalar(
        select(Booking)
        .where(Booking.plot_id == int(plot_id), Booking.status == BookingStatus.ACTIVE.value)
        .order_by(Booking.id.desc())
        .limit(1)
    )


# -------------------------
# Operations
# -------------------------
def create_booking(db: Session, p: Principal, *, plot_id: int, client_name: str, amount: float) -> Booking:
    """AVAILABLE -> BOOKED, inserting an ACTIVE booking in the same transaction."""
    if p.is_super_admin:
        raise Forbidden("Super admin cannot create booking")

    with atomic(db):
        plot = must_get_plot(db, p, plot_id=plot_id, for_update=True)
        _move_plot(db, plot, BOOK)

        booking = Booking(
            plot_id=int(plot.id),
            agent_id=int(p.user_id),
            client_name=client_name,
            amount=float(amount),
            status=BookingStatus.ACTIVE.value,
            created_at=utcnow(),
        )
        db.add(booking)
        db.flush()

        audit_write(
            db,
            company_id=p.company_id,
            actor_user_id=p.user_id,
            action="booking.create",
            entity_type="Booking",
            entity_id=str(booking.id),
            after=_booking_after(booking),
        )

    log.info("booking created", extra={"booking_id": int(booking.id), "plot_id": int(plot.id), "user_id": p.user_id})
    return booking


def cancel_booking(db: Session, p: Principal, *, booking_id: int) -> Booking:
    """BOOKED -> AVAILABLE, marking the booking CANCELLED in the same transaction."""
    with atomic(db):
        booking = db.scalar(
            select(Booking)
            .options(joinedload(Booking.plot).joinedload(Plot.project))
            .where(Booking.id == int(booking_id))
            .execution_options(populate_existing=True)
        )
        if booking is None:
            raise NotFound("Booking not found")

        if not in_scope(p, booking.plot.project.company_id):
            raise Forbidden("Access denied")

        if booking.status != BookingStatus.ACTIVE.value:
            raise AlreadyCancelled()

        before = _booking_after(booking)
        plot = booking.plot
        _move_plot(db, plot, CANCEL)

        res = db.execute(
            update(Booking)
            .where(Booking.id == int(booking.id), Booking.status == BookingStatus.ACTIVE.value)
            .values(status=BookingStatus.CANCELLED.value, cancelled_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if int(res.rowcount or 0) != 1:
            raise AlreadyCancelled()
        db.refresh(booking)

        audit_write(
            db,
            company_id=booking.plot.project.company_id,
            actor_user_id=p.user_id,
            action="booking.cancel",
            entity_type="Booking",
            entity_id=str(booking.id),
            before=before,
            after=_booking_after(booking),
        )

    log.info("booking cancelled", extra={"booking_id": int(booking.id), "plot_id": int(plot.id), "user_id": p.user_id})
    return booking


def create_sale(db: Session, p: Principal, *, plot_id: int, amount: float) -> Sale:
    """BOOKED -> SOLD. Requires an ACTIVE booking on the plot."""
    if p.is_super_admin:
        raise Forbidden("Super admin cannot create a sale")

    with atomic(db):
        plot = must_get_plot(db, p, plot_id=plot_id, for_update=True)
        next_status(SELL, plot.status)

        if _active_booking(db, int(plot.id)) is None:
            raise InvalidState("No active booking found for this plot")

        _move_plot(db, plot, SELL)

        company_id = db.scalar(select(Project.company_id).where(Project.id == int(plot.project_id)))

        sale = Sale(
            plot_id=int(plot.id),
            agent_id=int(p.user_id),
            company_id=int(company_id),
            amount=float(amount),
            is_active=True,
            created_at=utcnow(),
        )
        db.add(sale)
        db.flush()

        audit_write(
            db,
            company_id=int(company_id),
            actor_user_id=p.user_id,
            action="sale.create",
            entity_type="Sale",
            entity_id=str(sale.id),
            after={"plot_id": int(plot.id), "amount": float(sale.amount)},
        )

    log.info("sale created", extra={"sale_id": int(sale.id), "plot_id": int(plot.id), "user_id": p.user_id})
    return sale
