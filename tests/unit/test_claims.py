"""Why a delivery claim (or a later step) is refused."""
import uuid

import pytest

from app.domain import claims
from app.domain.errors import InvalidState, PermissionDenied
from infrastructure.database.models import Delivery, DeliveryStatus, User, UserRole

DEMO_EMAIL = "demo_delivery@example.com"


def partner(email=None):
    return User(id=uuid.uuid4(), role=UserRole.DELIVERY, email=email)


def delivery(status=DeliveryStatus.PENDING, partner_id=None):
    return Delivery(id=uuid.uuid4(), order_id=uuid.uuid4(), status=status, delivery_partner_id=partner_id)


def test_unassigned_pending_delivery_is_claimable():
    claims.ensure_claimable(delivery(), partner(), DEMO_EMAIL)


def test_pending_delivery_preassigned_to_caller_is_claimable():
    me = partner()
    claims.ensure_claimable(delivery(partner_id=me.id), me, DEMO_EMAIL)


@pytest.mark.parametrize("status", [s for s in DeliveryStatus if s != DeliveryStatus.PENDING])
def test_non_pending_delivery_is_refused_for_everyone(status):
    me = partner()
    for record in (delivery(status), delivery(status, partner_id=me.id)):
        with pytest.raises(InvalidState, match="no longer available"):
            claims.ensure_claimable(record, me, DEMO_EMAIL)


def test_delivery_assigned_to_someone_else_is_refused():
    with pytest.raises(PermissionDenied) as exc:
        claims.ensure_claimable(delivery(partner_id=uuid.uuid4()), partner(), DEMO_EMAIL)
    assert exc.value.message == "Only assigned agents can secure!"


def test_demo_account_is_refused_even_when_claimable():
    with pytest.raises(PermissionDenied, match="Demo accounts"):
        claims.ensure_claimable(delivery(), partner("Demo_Delivery@Example.com"), DEMO_EMAIL)


def test_demo_check_disabled_without_configured_email():
    assert not claims.is_demo_account(partner(DEMO_EMAIL), None)


@pytest.mark.parametrize("status,allowed", [
    (DeliveryStatus.PENDING, False),
    (DeliveryStatus.ACCEPTED, True),
    (DeliveryStatus.PICKED_UP, True),
    (DeliveryStatus.IN_TRANSIT, True),
    (DeliveryStatus.DELIVERED, False),
])
def test_location_tracked_only_while_on_the_job(status, allowed):
    if allowed:
        claims.ensure_location_tracked(delivery(status))
    else:
        with pytest.raises(InvalidState):
            claims.ensure_location_tracked(delivery(status))


def test_pick_up_only_from_accepted():
    claims.ensure_can_pick_up(delivery(DeliveryStatus.ACCEPTED))
    with pytest.raises(InvalidState, match="Invalid delivery status"):
        claims.ensure_can_pick_up(delivery(DeliveryStatus.PICKED_UP))


def test_complete_only_after_pick_up():
    claims.ensure_can_complete(delivery(DeliveryStatus.PICKED_UP))
    claims.ensure_can_complete(delivery(DeliveryStatus.IN_TRANSIT))
    with pytest.raises(InvalidState, match="cannot be completed"):
        claims.ensure_can_complete(delivery(DeliveryStatus.ACCEPTED))
