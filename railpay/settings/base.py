import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()  # Load .env file if present

BASE_DIR = Path(__file__).resolve().parents[2]
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-key")
DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() in {"1", "true", "yes"}
raw_hosts = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1")
ALLOWED_HOSTS = [h.strip() for h in raw_hosts.split(",") if h.strip()]
# Fernet key for NIN values at rest (32 url-safe base64 bytes)
FERNET_KEY = os.getenv("FERNET_KEY", "ZGV2LWluc2VjdXJlLWZlcm5ldC1rZXktMDAwMDAwMDA=")

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

INSTALLED_APPS = [
    # Django Admin Deps
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Our apps and 3rd party
    "rest_framework",
    "rest_framework.authtoken",
    "railpay.apps.users.apps.UsersConfig",
    "railpay.apps.audit.apps.AuditConfig",
    "railpay.apps.routes.apps.RoutesConfig",
    "railpay.apps.ledger.apps.LedgerAppConfig",
    "railpay.apps.tickets.apps.TicketsConfig",
    "railpay.apps.passes.apps.PassesConfig",
    "railpay.apps.payments.apps.PaymentsConfig",
    "railpay.apps.settlement.apps.SettlementConfig",
    "railpay.apps.reconciliation.apps.ReconciliationConfig",
    "whitenoise.runserver_nostatic",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "railpay.urls"
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ]
        },
    }
]
WSGI_APPLICATION = "railpay.wsgi.application"

# Postgres by default; override with docker/dev settings as needed
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "HOST": os.getenv("DB_HOST", "localhost"),
        "PORT": os.getenv("DB_PORT", "5432"),
        "NAME": os.getenv("DB_NAME", "railpay"),
        "USER": os.getenv("DB_USER", "railpay"),
        "PASSWORD": os.getenv("DB_PASSWORD", "railpay"),
    }
}

DATABASE_URL = os.getenv("DATABASE_URL")
if DATABASE_URL:
    from urllib.parse import urlparse

    parsed = urlparse(DATABASE_URL)
    DATABASES["default"].update(
        {
            "NAME": parsed.path.lstrip("/"),
            "USER": parsed.username,
            "PASSWORD": parsed.password,
            "HOST": parsed.hostname,
            "PORT": parsed.port or "5432",
            "OPTIONS": {"sslmode": os.getenv("DB_SSLMODE", "require")},
        }
    )

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"
    },
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Africa/Lagos"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.TokenAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "EXCEPTION_HANDLER": "railpay.api.exception_handler",
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "railpay": {
            "handlers": ["console"],
            "level": os.getenv("RAILPAY_LOG_LEVEL", "INFO"),
        },
    },
}

# Celery configuration
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_DEFAULT_QUEUE = os.getenv("CELERY_TASK_DEFAULT_QUEUE", "settlement")
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_TIME_LIMIT = int(os.getenv("CELERY_TASK_TIME_LIMIT", "300"))

CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP = True

# Reconciliation is triggered by beat (or cron via the management command);
# nothing inside the web process polls the chain.
CELERY_BEAT_SCHEDULE = {
    "reconcile-chain-events": {
        "task": "railpay.apps.reconciliation.tasks.reconcile_chain_events",
        "schedule": int(os.getenv("RECONCILE_INTERVAL_SECONDS", "300")),
    },
    "expire-passes": {
        "task": "railpay.apps.passes.tasks.expire_passes",
        "schedule": 15 * 60,
    },
    "expire-tickets": {
        "task": "railpay.apps.tickets.tasks.expire_tickets",
        "schedule": 60 * 60,
    },
}

# ==============================================================================
# Ledger / Blockchain Configuration
# ==============================================================================

# Web3 Provider URL
# For local Hardhat: http://127.0.0.1:8545
# For Sepolia: https://sepolia.infura.io/v3/<project>
WEB3_PROVIDER_URL = os.getenv("WEB3_PROVIDER_URL", "http://127.0.0.1:8545")

# Operator wallet that signs every ledger write
LEDGER_PRIVATE_KEY = os.getenv("LEDGER_PRIVATE_KEY", "")

# Contract Addresses
CONTRACT_RAILPAY_TICKET = os.getenv("CONTRACT_RAILPAY_TICKET", "")
CONTRACT_RAILPASS_SUBSCRIPTION = os.getenv("CONTRACT_RAILPASS_SUBSCRIPTION", "")
CONTRACT_RAILPAY_PAYMENTS = os.getenv("CONTRACT_RAILPAY_PAYMENTS", "")

# ABI directory (JSON ABIs shipped with the ledger app)
LEDGER_ABI_DIR = BASE_DIR / "railpay" / "apps" / "ledger" / "abi"

LEDGER_CONFIRMATIONS = int(os.getenv("LEDGER_CONFIRMATIONS", "1"))
LEDGER_CONFIRM_TIMEOUT = int(os.getenv("LEDGER_CONFIRM_TIMEOUT", "120"))
LEDGER_POLL_LATENCY = float(os.getenv("LEDGER_POLL_LATENCY", "1.0"))
LEDGER_REQUEST_TIMEOUT = int(os.getenv("LEDGER_REQUEST_TIMEOUT", "15"))

RECONCILE_BLOCK_WINDOW = int(os.getenv("RECONCILE_BLOCK_WINDOW", "1000"))

# ==============================================================================
# Identity verification
# ==============================================================================

KORAPAY_BASE_URL = os.getenv("KORAPAY_BASE_URL", "https://api.korapay.com")
KORAPAY_SECRET_KEY = os.getenv("KORAPAY_SECRET_KEY", "")
KORAPAY_TIMEOUT = int(os.getenv("KORAPAY_TIMEOUT", "15"))

# Self-attested identities are stored as their own status; whether they may
# buy tickets is a deployment decision.
RAILPAY_ACCEPT_SELF_ATTESTED = os.getenv(
    "RAILPAY_ACCEPT_SELF_ATTESTED", "false"
).lower() in {"1", "true", "yes"}

# Hours after travel time before an unused ticket is marked expired
TICKET_EXPIRY_GRACE_HOURS = int(os.getenv("TICKET_EXPIRY_GRACE_HOURS", "24"))
