# carfinder/authorization.py
from .models import User, ROLE_STAFF


def is_staff(user: User) -> bool:
    return bool(user and user.role == ROLE_STAFF)


def can_manage_dealer(user: User, dealer_id: int) -> bool:
    """Staff can manage any dealer; everyone else needs a membership."""
    if not user:
        return False
    if is_staff(user):
        return True
    return any(m.dealer_id == dealer_id for m in user.memberships)
