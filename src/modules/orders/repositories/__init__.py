"""Order gateways package."""

from modules.orders.repositories.http_gateway import OrderHttpGateway
from modules.orders.repositories.interfaces import IOrderGateway

__all__ = ["IOrderGateway", "OrderHttpGateway"]
