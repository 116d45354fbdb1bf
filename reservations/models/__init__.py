"""Database models."""

from reservations.models.booking import Booking
from reservations.models.payment import Payment
from reservations.models.user import Notification, PointsHistory, Reward, User, UserReward

__all__ = [
    # User
    "User",
    # Booking
    "Booking",
    # Payment
    "Payment",
    # Loyalty
    "Reward",
    "UserReward",
    "PointsHistory",
    # Notifications
    "Notification",
]
