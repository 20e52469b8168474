"""Helper modules for the PrintQueue application."""

__all__ = [
    "conversion_client",
    "intake",
    "notification",
    "page_counter",
    "pricing",
]
