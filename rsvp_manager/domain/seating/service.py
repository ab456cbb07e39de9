"""Seating service - tables, guest assignments, venue blocks and auto-arrange"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session, joinedload

from ...models import Guest, User
from ...models_seating import TableAssignment, VenueBlock, WeddingTable
from ...permissions import ROLE_EDITOR, ROLE_VIEWER, can_access_event, get_event_with_access
from ...services.seat_calculator import (
    calculate_seat_positions,
    get_available_arrangements,
    seats_used_by_guest,
)
from .schemas import (
    AutoArrangeRequest,
    TableCreate,
    TableUpdate,
    VenueBlockCreate,
    VenueBlockUpdate,
)

logger = logging.getLogger(__name__)

SIDE_LABELS = {"bride": "כלה", "groom": "חתן", "both": "שניהם", "other": "אחר"}
GROUP_LABELS = {"family": "משפחה", "friends": "חברים", "work": "עבודה", "other": "אחר"}

RSVP_SEATING_ORDER = {"ACCEPTED": 0, "PENDING": 1, "MAYBE": 1, "DECLINED": 2}

# Auto-arrange canvas grid
GRID_COLUMNS = 6
GRID_SPACING_X = 180
GRID_SPACING_Y = 180
GRID_MARGIN = 60


def _arrange_sort_key(guest: Guest):
    status = guest.rsvp.status if guest.rsvp else "PENDING"
    return (
        (guest.group_name or "zzz_other").lower(),
        (guest.side or "zzz_other").lower(),
        RSVP_SEATING_ORDER.get(status, 1),
        guest.name.lower(),
    )


def _bucket_label(group: str, side: str = None) -> str:
    group_label = GROUP_LABELS.get(group.lower(), group)
    if side is None:
        return group_label
    return f"{group_label} - {SIDE_LABELS.get(side.lower(), side)}"


def fill_tables(guests: list[Guest], table_size: int) -> list[list[Guest]]:
    """
    Split an ordered bucket of guests into tables of at most table_size seats.
    A party larger than the table still gets a table of its own.
    """
    tables = []
    current: list[Guest] = []
    seats = 0
    for guest in guests:
        needed = seats_used_by_guest(guest)
        if current and seats + needed > table_size:
            tables.append(current)
            current, seats = [], 0
        current.append(guest)
        seats += needed
        if seats >= table_size:
            tables.append(current)
            current, seats = [], 0
    if current:
        tables.append(current)
    return tables


class SeatingService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def _get_table(self, table_id: int, user: User, required_role: str = ROLE_EDITOR) -> WeddingTable:
        table = self.db.query(WeddingTable).filter(WeddingTable.id == table_id).first()
        if not table or not can_access_event(self.db, user, table.event_id, required_role):
            raise HTTPException(status_code=404, detail="Table not found")
        return table

    @staticmethod
    def table_to_dict(table: WeddingTable) -> dict:
        guests = []
        for assignment in table.assignments:
            guest = assignment.guest
            guests.append(
                {
                    "guest_id": guest.id,
                    "name": guest.name,
                    "side": guest.side,
                    "group_name": guest.group_name,
                    "rsvp_status": guest.rsvp.status if guest.rsvp else "PENDING",
                    "seats": seats_used_by_guest(guest),
                    "seat_number": assignment.seat_number,
                }
            )
        seats_used = sum(g["seats"] for g in guests)
        return {
            "id": table.id,
            "event_id": table.event_id,
            "name": table.name,
            "capacity": table.capacity,
            "shape": table.shape,
            "seat_arrangement": table.seat_arrangement,
            "position_x": table.position_x,
            "position_y": table.position_y,
            "width": table.width,
            "height": table.height,
            "rotation": table.rotation,
            "color": table.color,
            "seats_used": seats_used,
            "over_capacity": seats_used > table.capacity,
            "guests": guests,
            "seats": [
                s.to_dict()
                for s in calculate_seat_positions(table.shape, table.capacity, table.seat_arrangement)
            ],
        }

    def list_tables(self, event_id: int, user: User) -> list[WeddingTable]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return (
            self.db.query(WeddingTable)
            .options(joinedload(WeddingTable.assignments).joinedload(TableAssignment.guest))
            .filter(WeddingTable.event_id == event.id)
            .order_by(WeddingTable.id.asc())
            .all()
        )

    def create_table(self, event_id: int, data: TableCreate, user: User) -> WeddingTable:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        if data.seat_arrangement not in get_available_arrangements(data.shape):
            data.seat_arrangement = "even"
        table = WeddingTable(event_id=event.id, **data.model_dump())
        self.db.add(table)
        self.db.commit()
        self.db.refresh(table)
        logger.info(f"🪑 Table {table.id} created for event {event.id}")
        return table

    def update_table(self, table_id: int, data: TableUpdate, user: User) -> WeddingTable:
        table = self._get_table(table_id, user)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None or field == "color":
                setattr(table, field, value)
        if table.seat_arrangement not in get_available_arrangements(table.shape):
            table.seat_arrangement = "even"
        self.db.commit()
        self.db.refresh(table)
        return table

    def delete_table(self, table_id: int, user: User) -> None:
        table = self._get_table(table_id, user)
        self.db.delete(table)
        self.db.commit()

    # ------------------------------------------------------------------
    # Assignments
    # ------------------------------------------------------------------

    def assign_guests_to_table(self, table_id: int, guest_ids: list[int], user: User) -> dict:
        table = self._get_table(table_id, user)
        if not guest_ids:
            raise HTTPException(status_code=400, detail="No guests selected")

        guests = (
            self.db.query(Guest)
            .filter(Guest.id.in_(guest_ids), Guest.event_id == table.event_id)
            .all()
        )
        if len(guests) != len(set(guest_ids)):
            raise HTTPException(status_code=400, detail="Some guests not found or don't belong to this event")

        current_seats = sum(
            seats_used_by_guest(a.guest) for a in table.assignments if a.guest_id not in guest_ids
        )
        new_seats = sum(seats_used_by_guest(g) for g in guests)

        # Guests move: any previous assignment is replaced
        self.db.query(TableAssignment).filter(TableAssignment.guest_id.in_(guest_ids)).delete(
            synchronize_session=False
        )
        for guest in guests:
            self.db.add(TableAssignment(table_id=table.id, guest_id=guest.id))
        self.db.commit()
        self.db.expire_all()

        capacity_warning = current_seats + new_seats > table.capacity
        if capacity_warning:
            logger.warning(f"⚠️ Table {table.id} over capacity ({current_seats + new_seats}/{table.capacity})")
        return {"success": True, "assigned": len(guests), "capacity_warning": capacity_warning}

    def remove_guest_from_table(self, guest_id: int, user: User) -> None:
        assignment = self.db.query(TableAssignment).filter(TableAssignment.guest_id == guest_id).first()
        if not assignment or not can_access_event(self.db, user, assignment.table.event_id, ROLE_EDITOR):
            raise HTTPException(status_code=404, detail="Guest is not seated")
        self.db.delete(assignment)
        self.db.commit()

    def move_guest(self, guest_id: int, to_table_id: int, user: User) -> dict:
        table = self._get_table(to_table_id, user)
        guest = self.db.query(Guest).filter(Guest.id == guest_id, Guest.event_id == table.event_id).first()
        if not guest:
            raise HTTPException(status_code=404, detail="Guest not found")
        return self.assign_guests_to_table(table.id, [guest.id], user)

    def get_unseated_guests(self, event_id: int, user: User) -> list[dict]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        guests = (
            self.db.query(Guest)
            .outerjoin(TableAssignment, TableAssignment.guest_id == Guest.id)
            .filter(Guest.event_id == event.id, TableAssignment.id.is_(None))
            .order_by(Guest.name.asc())
            .all()
        )
        return [
            {
                "id": g.id,
                "name": g.name,
                "side": g.side,
                "group_name": g.group_name,
                "rsvp_status": g.rsvp.status if g.rsvp else "PENDING",
                "seats_needed": seats_used_by_guest(g),
            }
            for g in guests
        ]

    def get_seating_stats(self, event_id: int, user: User) -> dict:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)

        total_capacity = sum(t.capacity for t in event.tables)
        seated = [g for g in event.guests if g.table_assignment is not None]
        unseated = [g for g in event.guests if g.table_assignment is None]
        seated_by_party = sum(seats_used_by_guest(g) for g in seated)

        return {
            "total_tables": len(event.tables),
            "total_capacity": total_capacity,
            "seated_guests_count": len(seated),
            "unseated_guests_count": len(unseated),
            "seated_by_party_size": seated_by_party,
            "unseated_by_party_size": sum(seats_used_by_guest(g) for g in unseated),
            "capacity_used": seated_by_party,
            "capacity_remaining": total_capacity - seated_by_party,
        }

    def auto_arrange(self, event_id: int, data: AutoArrangeRequest, user: User) -> dict:
        """
        Rebuild the seating chart from scratch.

        Guests are bucketed by group (or group and side), confirmed guests
        first, and each bucket fills consecutive tables.
        """
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)

        query = self.db.query(Guest).filter(Guest.event_id == event.id)
        if data.side_filter and data.side_filter != "all":
            query = query.filter(Guest.side == data.side_filter)
        if data.group_filter and data.group_filter != "all":
            query = query.filter(Guest.group_name == data.group_filter)
        guests = [
            g
            for g in query.all()
            if (g.rsvp.status if g.rsvp else "PENDING") in data.include_rsvp_statuses
        ]
        if not guests:
            raise HTTPException(status_code=400, detail="No guests match the selected filters")

        guests.sort(key=_arrange_sort_key)

        buckets: dict[tuple, list[Guest]] = {}
        for guest in guests:
            group = guest.group_name or "other"
            key = (group, guest.side or "other") if data.group_by == "group-side" else (group,)
            buckets.setdefault(key, []).append(guest)

        for table in list(event.tables):
            self.db.delete(table)
        self.db.flush()

        table_number = 1
        guests_seated = 0
        for key, bucket in buckets.items():
            label = _bucket_label(*key)
            for table_guests in fill_tables(bucket, data.table_size):
                index = table_number - 1
                table = WeddingTable(
                    event_id=event.id,
                    name=f"{table_number} - {label}",
                    capacity=data.table_size,
                    shape=data.table_shape,
                    position_x=GRID_MARGIN + (index % GRID_COLUMNS) * GRID_SPACING_X,
                    position_y=GRID_MARGIN + (index // GRID_COLUMNS) * GRID_SPACING_Y,
                )
                table.assignments = [TableAssignment(guest_id=g.id) for g in table_guests]
                self.db.add(table)
                table_number += 1
                guests_seated += len(table_guests)

        self.db.commit()
        self.db.expire_all()

        tables_created = table_number - 1
        logger.info(f"🪑 Auto-arranged event {event.id}: {tables_created} tables, {guests_seated} guests")
        return {"success": True, "tables_created": tables_created, "guests_seated": guests_seated}

    # ------------------------------------------------------------------
    # Venue blocks
    # ------------------------------------------------------------------

    def _get_block(self, block_id: int, user: User) -> VenueBlock:
        block = self.db.query(VenueBlock).filter(VenueBlock.id == block_id).first()
        if not block or not can_access_event(self.db, user, block.event_id, ROLE_EDITOR):
            raise HTTPException(status_code=404, detail="Venue block not found")
        return block

    def list_venue_blocks(self, event_id: int, user: User) -> list[VenueBlock]:
        event = get_event_with_access(self.db, user, event_id, ROLE_VIEWER)
        return self.db.query(VenueBlock).filter(VenueBlock.event_id == event.id).order_by(VenueBlock.id).all()

    def create_venue_block(self, event_id: int, data: VenueBlockCreate, user: User) -> VenueBlock:
        event = get_event_with_access(self.db, user, event_id, ROLE_EDITOR)
        block = VenueBlock(event_id=event.id, **data.model_dump())
        self.db.add(block)
        self.db.commit()
        self.db.refresh(block)
        return block

    def update_venue_block(self, block_id: int, data: VenueBlockUpdate, user: User) -> VenueBlock:
        block = self._get_block(block_id, user)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None or field == "color":
                setattr(block, field, value)
        self.db.commit()
        self.db.refresh(block)
        return block

    def delete_venue_block(self, block_id: int, user: User) -> None:
        block = self._get_block(block_id, user)
        self.db.delete(block)
        self.db.commit()
