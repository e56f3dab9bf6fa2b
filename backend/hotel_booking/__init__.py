"""Hotel room booking for event attendees."""
