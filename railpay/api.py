"""
Shared API plumbing: the DRF exception handler that turns RailPay errors
into ``{"success": false, "code": ..., "message": ...}`` responses, and
role permissions.
"""

import logging

from rest_framework import exceptions as drf_exceptions
from rest_framework.permissions import BasePermission
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from railpay.apps.users.models import Profile
from railpay.exceptions import RailPayError

logger = logging.getLogger(__name__)


def exception_handler(exc, context):
    if isinstance(exc, RailPayError):
        if exc.http_status >= 500:
            logger.error(f"{context['view'].__class__.__name__}: {exc.code}: {exc.message}")
        return Response(exc.as_dict(), status=exc.http_status)

    response = drf_exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, drf_exceptions.ValidationError):
        response.data = {"success": False, "code": "invalid_request", "message": "Invalid request", "errors": exc.detail}
    else:
        detail = response.data.get("detail", "") if isinstance(response.data, dict) else response.data
        code = getattr(exc, "default_code", "error")
        response.data = {"success": False, "code": code, "message": str(detail)}
    return response


def success(data=None, status=200, **extra):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return Response(body, status=status)


def profile_of(request) -> Profile:
    try:
        return request.user.profile
    except Profile.DoesNotExist:
        raise drf_exceptions.NotFound("User profile not found")


class IsStaffMember(BasePermission):
    message = "Unauthorized. Admin or staff access required."

    def has_permission(self, request, view):
        profile = getattr(request.user, "profile", None) if request.user.is_authenticated else None
        return bool(profile and profile.is_active and profile.is_staff_member)


class IsAdminRole(BasePermission):
    message = "Unauthorized. Admin access required."

    def has_permission(self, request, view):
        profile = getattr(request.user, "profile", None) if request.user.is_authenticated else None
        return bool(profile and profile.is_active and profile.is_admin)
