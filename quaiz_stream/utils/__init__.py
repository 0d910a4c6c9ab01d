"""JSON extraction, repair, validation and projection helpers."""
