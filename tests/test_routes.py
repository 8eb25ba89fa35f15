from decimal import Decimal
import uuid

import pytest

from railpay.apps.audit.models import AdminLog
from railpay.apps.routes.services import active_routes, get_route_fare, save_route, update_fare
from railpay.exceptions import NotAuthorized, PreconditionNotMet, ResourceNotFound

pytestmark = pytest.mark.django_db


def test_route_fare_lookup(route):
    fare = get_route_fare(route.id)
    assert fare.active
    assert fare.price == Decimal("10.00")
    assert (fare.origin, fare.destination) == ("Lagos", "Ibadan")


@pytest.mark.parametrize("route_id", [uuid.uuid4(), "not-a-uuid"])
def test_unknown_route_is_not_found(route_id):
    with pytest.raises(ResourceNotFound):
        get_route_fare(route_id)


def test_fare_update_is_audited(route, admin_profile):
    update_fare(admin_profile, route.id, "12.5")

    route.refresh_from_db()
    entry = AdminLog.objects.get(action_type="fare_updated")
    assert route.base_price == Decimal("12.5")
    assert entry.actor == admin_profile
    assert entry.resource_id == str(route.id)
    assert entry.metadata["old_price"] == "10.00000000"
    assert entry.metadata["new_price"] == "12.5"


def test_only_admins_update_fares(route, staff):
    with pytest.raises(NotAuthorized):
        update_fare(staff, route.id, "12")
    assert not AdminLog.objects.exists()


@pytest.mark.parametrize("price", ["0", "-3", "free"])
def test_fare_must_be_positive(route, admin_profile, price):
    with pytest.raises(PreconditionNotMet) as exc:
        update_fare(admin_profile, route.id, price)
    assert exc.value.reason == "invalid_price"


def test_create_and_deactivate_route(admin_profile):
    route = save_route(
        admin_profile,
        origin="Abuja",
        destination="Kaduna",
        vehicle_type="train",
        base_price="4",
    )
    save_route(admin_profile, route_id=route.id, active=False)

    route.refresh_from_db()
    assert not route.active
    assert list(active_routes()) == []
    assert set(AdminLog.objects.values_list("action_type", flat=True)) == {"route_created", "route_updated"}


def test_create_route_requires_fields(admin_profile):
    with pytest.raises(PreconditionNotMet) as exc:
        save_route(admin_profile, origin="Abuja")
    assert exc.value.reason == "missing_fields"


def test_active_routes_by_vehicle_type(route, admin_profile):
    save_route(admin_profile, origin="Ikeja", destination="CMS", vehicle_type="brt", base_price="0.5")
    assert [r.vehicle_type for r in active_routes("brt")] == ["brt"]
    assert len(active_routes()) == 2
