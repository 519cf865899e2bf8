"""Datenmodell für einen Besprechungsraum (Pydantic v2)."""

from pydantic import BaseModel, Field


class Room(BaseModel):
    """Ein buchbarer Raum. Aus Sicht des Kerns nur lesend."""

    id: str                          # "R01"
    name: str                        # "Besprechungsraum Nord"
    location: str = ""               # "Gebäude A, 2. OG"
    capacity: int = Field(ge=1)      # maximale Teilnehmerzahl
    amenities: list[str] = []        # "Beamer", "Whiteboard", ...
    is_active: bool = True
