"""Database models."""

from app.models.helmet import Helmet, make_natural_key
from app.models.helmet_price import HelmetPrice

__all__ = [
    "Helmet",
    "HelmetPrice",
    "make_natural_key",
]
