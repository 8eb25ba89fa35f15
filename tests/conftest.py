from decimal import Decimal
import itertools

import pytest
from rest_framework.test import APIClient

from railpay.apps.routes.models import Route
from railpay.apps.settlement.services import SettlementCoordinator
from tests.fakes import FakeLedger

_counter = itertools.count(1)


@pytest.fixture
def make_profile(db, django_user_model):
    def make(role="passenger", status="verified", wallet=True, **fields):
        n = next(_counter)
        user = django_user_model.objects.create_user(username=f"user{n}", password="pw")
        profile = user.profile
        profile.full_name = fields.pop("full_name", f"Passenger {n}")
        profile.role = role
        profile.verification_status = status
        profile.wallet_address = f"0x{n:040x}" if wallet else None
        for name, value in fields.items():
            setattr(profile, name, value)
        profile.save()
        return profile

    return make


@pytest.fixture
def passenger(make_profile):
    return make_profile()


@pytest.fixture
def staff(make_profile):
    return make_profile(role="staff")


@pytest.fixture
def admin_profile(make_profile):
    return make_profile(role="admin")


@pytest.fixture
def route(db):
    return Route.objects.create(
        origin="Lagos",
        destination="Ibadan",
        vehicle_type="train",
        base_price=Decimal("10.00"),
        estimated_minutes=120,
    )


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def coordinator(ledger):
    return SettlementCoordinator(ledger, confirmations=1, confirm_timeout=1)


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for(api_client):
    def login(profile):
        api_client.force_authenticate(user=profile.user)
        return api_client

    return login
