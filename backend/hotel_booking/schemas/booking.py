"""
Pydantic schemas for booking request/response validation.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class BookingRequest(BaseModel):
    """
    Body of POST /booking and PUT /booking/{id}.

    An unusable roomId is not a validation error here: it becomes None and the
    endpoint answers 403, the same as any other refused booking.
    """

    room_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("roomId", "room_id"),
    )

    @field_validator("room_id", mode="before")
    @classmethod
    def _numeric_room_id(cls, value: Any) -> Optional[int]:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value if value > 0 else None
        if isinstance(value, str) and value.strip().isdecimal():
            try:
                parsed = int(value.strip())
            except ValueError:
                return None
            return parsed if parsed > 0 else None
        return None


class BookingIdResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_id: int = Field(serialization_alias="bookingId")


class RoomResponse(BaseModel):
    id: int
    name: str
    capacity: int
    hotel_id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    room: RoomResponse

    model_config = {"from_attributes": True}
