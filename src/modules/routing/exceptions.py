from shared.domain.exceptions import NotFoundError, UpstreamError, ValidationError


class StopNotInRoute(NotFoundError):
    code = "stop_not_in_route"
    default_message = "Entrega não está na sua rota."


class InvalidRouteOrder(ValidationError):
    code = "invalid_route_order"
    default_message = "A ordem informada não corresponde às suas entregas ativas."


class RouteOptimizerUnavailable(UpstreamError):
    code = "route_optimizer_unavailable"
    default_message = "Serviço de otimização de rota indisponível."
