from hotel_booking.schemas.booking import (
    BookingRequest, BookingIdResponse, BookingResponse, RoomResponse,
)

__all__ = [
    "BookingRequest", "BookingIdResponse", "BookingResponse", "RoomResponse",
]
