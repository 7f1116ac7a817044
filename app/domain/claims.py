# app/domain/claims.py
"""
Delivery claim rules.

A pending delivery may be claimed by exactly one partner. These checks
explain *why* a claim is refused; the claim itself is a single conditional
UPDATE in DeliveryRepository.claim, so two partners racing for the same
delivery cannot both win.
"""

from typing import FrozenSet, Optional

from app.domain.errors import InvalidState, PermissionDenied
from infrastructure.database.models import Delivery, DeliveryStatus, User

NO_LONGER_AVAILABLE = "Delivery is no longer available"
ONLY_ASSIGNED_AGENT = "Only assigned agents can secure!"
DEMO_ACCOUNT_REFUSED = "Demo accounts cannot accept deliveries"

CLAIMABLE_STATUS = DeliveryStatus.PENDING

LOCATION_TRACKED: FrozenSet[DeliveryStatus] = frozenset({
    DeliveryStatus.ACCEPTED,
    DeliveryStatus.PICKED_UP,
    DeliveryStatus.IN_TRANSIT,
})

PICKUP_FROM: FrozenSet[DeliveryStatus] = frozenset({DeliveryStatus.ACCEPTED})

COMPLETABLE_FROM: FrozenSet[DeliveryStatus] = frozenset({
    DeliveryStatus.PICKED_UP,
    DeliveryStatus.IN_TRANSIT,
})


def is_demo_account(user: User, demo_email: Optional[str]) -> bool:
    return bool(demo_email and user.email and user.email.lower() == demo_email.lower())


def ensure_claimable(delivery: Delivery, partner: User, demo_email: Optional[str] = None):
    """
    Raise the reason ``partner`` cannot claim ``delivery``.

    The demo account is refused whatever the delivery's state.
    """
    if is_demo_account(partner, demo_email):
        raise PermissionDenied(DEMO_ACCOUNT_REFUSED)

    if DeliveryStatus(delivery.status) != CLAIMABLE_STATUS:
        raise InvalidState(NO_LONGER_AVAILABLE)

    if delivery.delivery_partner_id is not None and delivery.delivery_partner_id != partner.id:
        raise PermissionDenied(ONLY_ASSIGNED_AGENT)


def ensure_location_tracked(delivery: Delivery):
    if DeliveryStatus(delivery.status) not in LOCATION_TRACKED:
        raise InvalidState("Cannot update location for this delivery")


def ensure_can_pick_up(delivery: Delivery):
    if DeliveryStatus(delivery.status) not in PICKUP_FROM:
        raise InvalidState("Invalid delivery status")


def ensure_can_complete(delivery: Delivery):
    if DeliveryStatus(delivery.status) not in COMPLETABLE_FROM:
        raise InvalidState("Delivery cannot be completed at this stage")
