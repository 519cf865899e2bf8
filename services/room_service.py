"""Raumverwaltung: Anlegen, Ändern, Deaktivieren und Löschen von Räumen.

Räume mit Buchungen werden nicht gelöscht, sondern deaktiviert. Ein
deaktivierter Raum ist nicht mehr buchbar und fällt aus der Auswertung.
"""

import logging
from typing import TYPE_CHECKING, Optional

from models.errors import BookingError, NotFoundError
from models.room import Room

if TYPE_CHECKING:
    from store.repository import BookingRepository

logger = logging.getLogger(__name__)


class RoomService:
    def __init__(self, repository: "BookingRepository") -> None:
        self.repository = repository

    def list_rooms(self, active_only: bool = False) -> list[Room]:
        return self.repository.list_rooms(active_only=active_only)

    def get_room(self, room_id: str) -> Room:
        room = self.repository.get_room(room_id)
        if room is None:
            raise NotFoundError("Raum", room_id)
        return room

    def create_room(
        self,
        room_id: str,
        name: str,
        capacity: int,
        location: str = "",
        amenities: Optional[list[str]] = None,
    ) -> Room:
        """Legt einen aktiven Raum an. Doppelte IDs → ValueError."""
        room = Room(
            id=room_id,
            name=name,
            location=location,
            capacity=capacity,
            amenities=amenities or [],
        )
        self.repository.add_room(room)
        logger.info(f"Raum {room_id} angelegt ({name}, {capacity} Plätze)")
        return room

    def update_room(
        self,
        room_id: str,
        name: Optional[str] = None,
        location: Optional[str] = None,
        capacity: Optional[int] = None,
        amenities: Optional[list[str]] = None,
    ) -> Room:
        """Ändert Stammdaten. Die geänderten Werte werden erneut validiert."""
        room = self.get_room(room_id)
        updates = {
            key: value
            for key, value in (
                ("name", name), ("location", location),
                ("capacity", capacity), ("amenities", amenities),
            )
            if value is not None
        }
        if not updates:
            return room
        room = Room.model_validate({**room.model_dump(), **updates})
        self.repository.save_room(room)
        logger.info(f"Raum {room_id} geändert: {', '.join(updates)}")
        return room

    def set_active(self, room_id: str, active: bool) -> Room:
        room = self.get_room(room_id)
        if room.is_active == active:
            return room
        room = room.model_copy(update={"is_active": active})
        self.repository.save_room(room)
        logger.info(f"Raum {room_id} {'aktiviert' if active else 'deaktiviert'}")
        return room

    def deactivate_room(self, room_id: str) -> Room:
        return self.set_active(room_id, False)

    def activate_room(self, room_id: str) -> Room:
        return self.set_active(room_id, True)

    def delete_room(self, room_id: str) -> None:
        """Löscht einen Raum ohne Buchungen; sonst BookingError (Deaktivieren nutzen)."""
        try:
            deleted = self.repository.delete_room(room_id)
        except ValueError as e:
            raise BookingError(f"{e}. Raum stattdessen deaktivieren.") from e
        if not deleted:
            raise NotFoundError("Raum", room_id)
        logger.info(f"Raum {room_id} gelöscht")
