import logging

from django.core.exceptions import ImproperlyConfigured
from rest_framework.decorators import api_view, permission_classes

from railpay.api import IsStaffMember, profile_of, success
from railpay.apps.ledger.services import ledger_client_from_settings, ledger_reader_from_settings
from railpay.apps.passes.models import Pass
from railpay.apps.passes.serializers import PassSerializer
from railpay.apps.payments.models import Payment
from railpay.apps.payments.serializers import PaymentSerializer
from railpay.apps.tickets.models import Ticket
from railpay.apps.tickets.serializers import TicketSerializer
from railpay.exceptions import LedgerError
from .serializers import (
    BuyPassSerializer,
    BuyTicketSerializer,
    PassStatusSerializer,
    PaymentRequestSerializer,
    PendingPersistSerializer,
    ValidateTicketSerializer,
)
from .services import PendingPersist, SettlementCoordinator, check_pass_status

logger = logging.getLogger(__name__)


def _coordinator() -> SettlementCoordinator:
    return SettlementCoordinator(ledger_client_from_settings())


RECORD_SERIALIZERS = ((Ticket, TicketSerializer), (Pass, PassSerializer), (Payment, PaymentSerializer))


def _serialize(record):
    for model, serializer in RECORD_SERIALIZERS:
        if isinstance(record, model):
            return serializer(record).data
    raise TypeError(f"No serializer for {type(record).__name__}")


def _buy_ticket(request):
    serializer = BuyTicketSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    ticket = _coordinator().buy_ticket(
        profile_of(request),
        route_id=data["route_id"],
        travel_time=data.get("travel_date"),
        seat_label=data.get("seat_number", ""),
        ticket_type=data["ticket_type"],
        reference=data.get("reference"),
    )
    return success(TicketSerializer(ticket).data, status=201)


@api_view(["POST"])
def create_pass(request):
    serializer = BuyPassSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    travel_pass = _coordinator().buy_pass(
        profile_of(request),
        pass_class=data["pass_type"],
        reference=data.get("reference"),
    )
    return success(PassSerializer(travel_pass).data, status=201)


@api_view(["POST"])
def process_payment(request):
    serializer = PaymentRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payment = _coordinator().pay(
        profile_of(request),
        reference=data["reference"],
        amount=data["amount"],
        ticket_id=data.get("ticket_id"),
        pass_id=data.get("pass_id"),
        msg_value=data.get("msg_value") or 0,
        currency=data.get("currency") or "ETH",
        method=data.get("payment_method") or "blockchain",
    )
    return success(PaymentSerializer(payment).data, status=201)


@api_view(["POST"])
def retry_settlement(request, reference):
    record = _coordinator().retry_reference(reference, profile=profile_of(request))
    return success(_serialize(record))


@api_view(["POST"])
@permission_classes([IsStaffMember])
def retry_persist(request):
    serializer = PendingPersistSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = {
        k: str(v) if k in ("profile_id", "record_id") else v
        for k, v in serializer.validated_data.items()
    }
    data.setdefault("reference", None)
    data.setdefault("block_number", None)
    data.setdefault("ledger_id", None)

    # persisting never touches the ledger, so no client is needed
    record = SettlementCoordinator(ledger=None).retry_persist(PendingPersist.from_dict(data))
    return success(_serialize(record))


@api_view(["POST"])
def validate_ticket(request):
    serializer = ValidateTicketSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    ticket = _coordinator().validate_ticket(serializer.validated_data["qr_payload"])
    return success(
        {"ticket_id": str(ticket.id), "validated_at": ticket.validated_at, "route_id": ticket.route_id},
        message="Ticket validated successfully",
    )


@api_view(["POST"])
@permission_classes([IsStaffMember])
def admin_scan_qr(request):
    serializer = ValidateTicketSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    ticket = _coordinator().validate_ticket(
        data["qr_payload"],
        actor=profile_of(request),
        device_id=data.get("device_id") or None,
    )
    return success(
        {"ticket_id": str(ticket.id), "validated_at": ticket.validated_at, "route_id": ticket.route_id},
        message="Ticket validated successfully",
    )


@api_view(["GET"])
def pass_status(request):
    try:
        reader = ledger_reader_from_settings()
    except (LedgerError, ImproperlyConfigured) as e:
        logger.warning(f"Pass status without chain check: {e}")
        reader = None

    statuses = check_pass_status(reader, profile_of(request), request.query_params.get("pass_id"))
    return success(PassStatusSerializer(statuses, many=True).data)


@api_view(["GET", "POST"])
def tickets(request):
    if request.method == "POST":
        return _buy_ticket(request)

    queryset = Ticket.objects.filter(owner=profile_of(request)).select_related("route")
    status = request.query_params.get("status")
    if status:
        queryset = queryset.filter(status=status)
    return success(TicketSerializer(queryset, many=True).data)
