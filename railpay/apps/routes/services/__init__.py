from .fares import RouteFare, active_routes, get_route_fare, save_route, update_fare

__all__ = ["RouteFare", "active_routes", "get_route_fare", "save_route", "update_fare"]
