from .client import DocumentClient
from .errors import CONNECTION_RESET, QueryError
from .query import QuerySpec

__all__ = ["DocumentClient", "QueryError", "QuerySpec", "CONNECTION_RESET"]
