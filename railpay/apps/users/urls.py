from django.urls import path
from .views import me, set_wallet, verify_nin

urlpatterns = [
    path("me/", me, name="profile-me"),
    path("identity/verify-nin/", verify_nin, name="verify-nin"),
    path("identity/wallet/", set_wallet, name="link-wallet"),
]
