from .base import *  # noqa

DEBUG = False
SECRET_KEY = "test-secret-key"
FERNET_KEY = "dGVzdC1vbmx5LWZlcm5ldC1rZXktMDAwMDAwMDAwMDA="

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"
    },
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

WEB3_PROVIDER_URL = "http://127.0.0.1:8545"
# Hardhat account #0
LEDGER_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
CONTRACT_RAILPAY_TICKET = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
CONTRACT_RAILPASS_SUBSCRIPTION = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
CONTRACT_RAILPAY_PAYMENTS = "0x9fE46736679d2D9a65F0992F2272dE9f3c7fa6e0"

LEDGER_CONFIRM_TIMEOUT = 5
LEDGER_POLL_LATENCY = 0.01

KORAPAY_SECRET_KEY = "sk_test_railpay"
RAILPAY_ACCEPT_SELF_ATTESTED = False
