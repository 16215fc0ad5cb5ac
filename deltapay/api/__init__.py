# Delta Pay API
from deltapay.api.router import api_router

__all__ = ["api_router"]
