from rest_framework.decorators import api_view

from railpay.api import profile_of, success
from .serializers import LinkWalletSerializer, ProfileSerializer, VerifyNINSerializer
from .services import IdentityVerificationService, link_wallet


@api_view(["GET"])
def me(request):
    return success(ProfileSerializer(profile_of(request)).data)


@api_view(["POST"])
def verify_nin(request):
    serializer = VerifyNINSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    profile = IdentityVerificationService().verify(
        profile_of(request),
        nin=data["nin"],
        full_name=data["full_name"],
        dob=data["dob"],
        phone=data["phone"],
    )
    message = (
        "NIN verified successfully"
        if profile.verification_status == "verified"
        else "Verification service unavailable; identity recorded as self-attested"
    )
    return success(ProfileSerializer(profile).data, message=message)


@api_view(["POST"])
def set_wallet(request):
    serializer = LinkWalletSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    profile = link_wallet(profile_of(request), serializer.validated_data["wallet_address"])
    return success(ProfileSerializer(profile).data)
