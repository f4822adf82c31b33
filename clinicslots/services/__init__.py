"""Application services composed from the booking core."""
