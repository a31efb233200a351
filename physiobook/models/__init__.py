"""Database models."""

from physiobook.models.appointments import appointments
from physiobook.models.notifications import notifications
from physiobook.models.profiles import profiles

__all__ = [
    "appointments",
    "notifications",
    "profiles",
]
