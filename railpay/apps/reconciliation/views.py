from rest_framework import serializers
from rest_framework.decorators import api_view, permission_classes

from railpay.api import IsStaffMember, success
from railpay.apps.reconciliation.services import run_reconciliation


class BlockRangeSerializer(serializers.Serializer):
    from_block = serializers.IntegerField(min_value=0, required=False)
    to_block = serializers.IntegerField(min_value=0, required=False)
    blocks = serializers.IntegerField(min_value=0, required=False)


@api_view(["GET", "POST"])
@permission_classes([IsStaffMember])
def reconcile_events(request):
    params = request.data if request.method == "POST" else request.query_params
    serializer = BlockRangeSerializer(data=params)
    serializer.is_valid(raise_exception=True)

    report = run_reconciliation(trigger="api", **serializer.validated_data)
    return success(report.to_dict(), message="Events processed successfully")
