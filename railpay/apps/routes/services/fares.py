"""
Route and fare lookup, plus the admin mutations that change them
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional
import logging
import uuid

from django.core.exceptions import ValidationError
from django.db import transaction

from railpay.exceptions import NotAuthorized, PreconditionNotMet, ResourceNotFound
from railpay.apps.audit.services import record_admin_action
from railpay.apps.routes.models import Route

logger = logging.getLogger(__name__)

ROUTE_FIELDS = ("origin", "destination", "vehicle_type", "base_price", "estimated_minutes", "active")
REQUIRED_ON_CREATE = ("origin", "destination", "vehicle_type", "base_price")


@dataclass(frozen=True)
class RouteFare:
    route_id: uuid.UUID
    active: bool
    price: Decimal
    origin: str = ""
    destination: str = ""


def _route(route_id) -> Route:
    try:
        return Route.objects.get(pk=route_id)
    except (Route.DoesNotExist, ValidationError, ValueError):
        raise ResourceNotFound(f"Route {route_id} not found")


def _price(value) -> Decimal:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise PreconditionNotMet("invalid_price", "Price must be a number")
    if not price.is_finite() or price <= 0:
        raise PreconditionNotMet("invalid_price", "Price must be greater than zero")
    return price


def _require_admin(actor):
    if actor is None or not actor.is_admin:
        raise NotAuthorized("Admin role required")


def get_route_fare(route_id) -> RouteFare:
    route = _route(route_id)
    return RouteFare(
        route_id=route.id,
        active=route.active,
        price=route.base_price,
        origin=route.origin,
        destination=route.destination,
    )


@transaction.atomic
def update_fare(actor, route_id, base_price) -> Route:
    _require_admin(actor)
    new_price = _price(base_price)
    route = Route.objects.select_for_update().filter(pk=_route(route_id).pk).get()
    old_price = route.base_price

    route.base_price = new_price
    route.save(update_fields=["base_price", "updated_at"])

    record_admin_action(
        actor,
        "fare_updated",
        "route",
        route.id,
        f"Updated fare for route: {route} ({old_price} → {new_price})",
        {
            "old_price": str(old_price),
            "new_price": str(new_price),
            "route_origin": route.origin,
            "route_destination": route.destination,
        },
    )
    return route


@transaction.atomic
def save_route(actor, route_id=None, **fields) -> Route:
    """
    Create a route (``route_id`` None) or patch the given fields of an
    existing one. Unknown fields are ignored.
    """
    _require_admin(actor)
    data = {k: v for k, v in fields.items() if k in ROUTE_FIELDS and v is not None}
    if "base_price" in data:
        data["base_price"] = _price(data["base_price"])

    if route_id is None:
        missing = [name for name in REQUIRED_ON_CREATE if name not in data]
        if missing:
            raise PreconditionNotMet("missing_fields", f"Missing required fields: {', '.join(missing)}")
        route = Route.objects.create(**data)
        action = "route_created"
    else:
        route = _route(route_id)
        for name, value in data.items():
            setattr(route, name, value)
        route.save()
        action = "route_updated"

    record_admin_action(
        actor,
        action,
        "route",
        route.id,
        f"{'Created' if action == 'route_created' else 'Updated'} route: {route}",
        {
            "origin": route.origin,
            "destination": route.destination,
            "vehicle_type": route.vehicle_type,
            "base_price": str(route.base_price),
            "active": route.active,
        },
    )
    logger.info(f"{action} {route.id} by {actor.id}")
    return route


def active_routes(vehicle_type: Optional[str] = None):
    qs = Route.objects.filter(active=True)
    if vehicle_type:
        qs = qs.filter(vehicle_type=vehicle_type)
    return qs
