from django.urls import path
from .views import create_route, list_routes, update_route, update_route_fare

urlpatterns = [
    path("routes/", list_routes, name="route-list"),
    path("admin/routes/", create_route, name="route-create"),
    path("admin/routes/<uuid:route_id>/", update_route, name="route-update"),
    path("admin/routes/<uuid:route_id>/fare/", update_route_fare, name="route-fare-update"),
]
