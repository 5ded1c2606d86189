"""
Authorization policy of the reservation lifecycle.

Every predicate takes the acting Principal explicitly, so the policy can
be tested without any transport layer.
"""

from datetime import datetime, timedelta
from typing import Optional

from .schemas import Principal, Role


def can_act_as_admin(principal: Principal) -> bool:
    return principal.role is Role.ADMIN


def can_book_for(principal: Principal, target_user_id: Optional[int]) -> bool:
    """Non-admins may only book for themselves."""
    if target_user_id is None or target_user_id == principal.user_id:
        return True
    return can_act_as_admin(principal)


def owns_spot(principal: Principal, spot) -> bool:
    """True if the principal owns the spot or the lot it belongs to."""
    if spot.owner_id == principal.user_id:
        return True
    parking = getattr(spot, "parking", None)
    return parking is not None and parking.owner_id == principal.user_id


def owns_reservation(principal: Principal, reservation) -> bool:
    return reservation.user_id is not None and reservation.user_id == principal.user_id


def can_modify_group(principal: Principal, group_user_id: Optional[int]) -> bool:
    if can_act_as_admin(principal):
        return True
    return group_user_id is not None and group_user_id == principal.user_id


def can_manage_parking(principal: Principal, parking) -> bool:
    return can_act_as_admin(principal) or parking.owner_id == principal.user_id


def can_end_early(principal: Principal, reservation) -> bool:
    return can_act_as_admin(principal) or owns_reservation(principal, reservation)


def can_cancel_as_tenant(principal: Principal, reservation, now: datetime, notice_hours: int = 24) -> bool:
    """The tenant must cancel at least notice_hours before the start."""
    return (
        owns_reservation(principal, reservation)
        and reservation.start_datetime - now >= timedelta(hours=notice_hours)
    )


def can_cancel_as_owner(principal: Principal, reservation, spot, now: datetime, window_hours: int = 48) -> bool:
    """The spot or lot owner may only cancel within window_hours before the start."""
    return (
        owns_spot(principal, spot)
        and reservation.start_datetime - now <= timedelta(hours=window_hours)
    )
