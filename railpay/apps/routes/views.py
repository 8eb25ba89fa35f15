from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny

from railpay.api import IsAdminRole, profile_of, success
from .serializers import FareUpdateSerializer, RouteSerializer, RouteUpdateSerializer
from .services import active_routes, save_route, update_fare


@api_view(["GET"])
@permission_classes([AllowAny])
def list_routes(request):
    routes = active_routes(request.query_params.get("vehicle_type"))
    return success(RouteSerializer(routes, many=True).data)


@api_view(["POST"])
@permission_classes([IsAdminRole])
def create_route(request):
    serializer = RouteUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    route = save_route(profile_of(request), **serializer.validated_data)
    return success(RouteSerializer(route).data, status=201)


@api_view(["PATCH"])
@permission_classes([IsAdminRole])
def update_route(request, route_id):
    serializer = RouteUpdateSerializer(data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    route = save_route(profile_of(request), route_id=route_id, **serializer.validated_data)
    return success(RouteSerializer(route).data)


@api_view(["POST"])
@permission_classes([IsAdminRole])
def update_route_fare(request, route_id):
    serializer = FareUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    route = update_fare(profile_of(request), route_id, serializer.validated_data["base_price"])
    return success(RouteSerializer(route).data)
