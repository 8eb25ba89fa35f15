"""
NIN identity verification

Two tiers: a Korapay NIN lookup, and when Korapay cannot be reached, a
logged fallback that stores the user's own statement as ``self_attested``.
A self-attested profile is never marked ``verified``.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

import requests
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from railpay.exceptions import IdentityVerificationFailed
from railpay.apps.users.crypto import encrypt_secret
from railpay.apps.users.models import NINVerification, Profile

logger = logging.getLogger(__name__)

NIN_LOOKUP_PATH = "/merchant/api/v1/identities/ng/nin"


class NINProviderUnavailable(Exception):
    """Korapay could not be reached or answered with a server error."""


@dataclass
class NINLookup:
    found: bool
    data: Dict[str, Any]
    message: str = ""


class KorapayNINClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.KORAPAY_BASE_URL).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else settings.KORAPAY_SECRET_KEY
        self.timeout = timeout or settings.KORAPAY_TIMEOUT
        self.session = session or requests.Session()

    def lookup(self, nin: str, reference: str) -> NINLookup:
        headers = {"Content-Type": "application/json"}
        if self.secret_key:
            headers["Authorization"] = f"Bearer {self.secret_key}"

        try:
            r = self.session.post(
                f"{self.base_url}{NIN_LOOKUP_PATH}",
                json={"id": nin, "verification_consent": True, "reference": reference},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise NINProviderUnavailable(str(e)) from e

        if r.status_code >= 500:
            raise NINProviderUnavailable(f"Korapay returned HTTP {r.status_code}")

        try:
            body = r.json()
        except ValueError as e:
            raise NINProviderUnavailable(f"Korapay returned a non-JSON body (HTTP {r.status_code})") from e

        message = body.get("message") or ""
        if not r.ok:
            return NINLookup(found=False, data={}, message=message or "NIN verification failed")

        data = body.get("data") or {}
        if body.get("status") in (True, "success") and data:
            return NINLookup(found=True, data=data, message=message)
        return NINLookup(found=False, data={}, message=message or "NIN verification failed")


def _nin_full_name(data: Dict[str, Any]) -> str:
    if data.get("first_name") and data.get("last_name"):
        return f"{data['first_name']} {data['last_name']}"
    if data.get("firstname") and data.get("lastname"):
        return f"{data['firstname']} {data['lastname']}"
    return data.get("full_name") or data.get("name") or ""


def names_match(provided: str, data: Dict[str, Any]) -> bool:
    """
    True when the provided name equals the NIN record's name, or every part
    of the record's name longer than two letters appears in it.
    """
    record = _nin_full_name(data).lower().strip()
    provided = (provided or "").lower().strip()
    if not record:
        return False
    if record == provided:
        return True

    record_parts = [p for p in record.split() if len(p) > 2]
    provided_parts = [p for p in provided.split() if len(p) > 2]
    if not record_parts:
        return False
    return all(
        any(part in given or given in part for given in provided_parts)
        for part in record_parts
    )


class IdentityVerificationService:
    def __init__(self, client: Optional[KorapayNINClient] = None):
        self.client = client or KorapayNINClient()

    def verify(self, profile: Profile, nin: str, full_name: str, dob=None, phone: Optional[str] = None) -> Profile:
        """
        Verify ``nin`` for ``profile`` and store the outcome on the profile.

        Returns the updated profile with ``verification_status`` of
        ``verified`` or ``self_attested``.

        Raises:
            IdentityVerificationFailed: NIN unknown to the provider or the
                name does not match the record
        """
        nin = (nin or "").strip()
        if not (nin.isdigit() and len(nin) == 11):
            raise IdentityVerificationFailed("invalid_nin", "NIN must be 11 digits")
        if not full_name:
            raise IdentityVerificationFailed("missing_name", "Full name is required")

        request_payload = {"full_name": full_name, "dob": str(dob) if dob else None, "phone": phone}
        reference = f"railpay_nin_{profile.id}"

        try:
            lookup = self.client.lookup(nin, reference)
        except NINProviderUnavailable as e:
            logger.warning(
                f"NIN provider unavailable for profile {profile.id}; storing self-attested identity: {e}"
            )
            self._record(profile, nin, "self_attested", request_payload, {}, error=str(e))
            return self._apply(profile, nin, full_name, dob, phone, status="self_attested")

        if not lookup.found:
            logger.info(f"NIN lookup failed for profile {profile.id}: {lookup.message}")
            self._record(profile, nin, "not_found", request_payload, {}, error=lookup.message)
            raise IdentityVerificationFailed("nin_not_found", lookup.message or "NIN verification failed")

        if not names_match(full_name, lookup.data):
            logger.info(f"NIN name mismatch for profile {profile.id}")
            self._record(profile, nin, "name_mismatch", request_payload, {"name": _nin_full_name(lookup.data)})
            raise IdentityVerificationFailed(
                "name_mismatch", "The name provided does not match the NIN record."
            )

        self._record(profile, nin, "verified", request_payload, {"name": _nin_full_name(lookup.data)})
        logger.info(f"NIN verified for profile {profile.id}")
        return self._apply(profile, nin, full_name, dob, phone, status="verified")

    def _record(self, profile, nin, outcome, request_payload, response_payload, error=""):
        NINVerification.objects.create(
            profile=profile,
            nin_last4=nin[-4:],
            outcome=outcome,
            request_payload=request_payload,
            response_payload=response_payload,
            error=error or "",
        )

    @transaction.atomic
    def _apply(self, profile, nin, full_name, dob, phone, status) -> Profile:
        # never downgrade a verified profile to self-attested
        if profile.verification_status == "verified" and status != "verified":
            return profile
        profile.full_name = full_name
        profile.dob = dob or profile.dob
        profile.phone = phone or profile.phone
        profile.nin_encrypted = encrypt_secret(nin)
        profile.nin_last4 = nin[-4:]
        profile.verification_status = status
        profile.verified_at = timezone.now() if status == "verified" else None
        profile.save()
        return profile
