from .credentials import Credentials
from .gateway import ApiResponse, HttpGateway

__all__ = [
    "ApiResponse",
    "Credentials",
    "HttpGateway",
]
