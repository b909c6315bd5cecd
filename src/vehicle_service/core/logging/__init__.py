# vehicle_service/core/logging/
# ├─ builder.py      # make_dict_config(settings) + setup_logging(settings) + queue wiring
# ├─ formatters.py   # JsonFormatter, ColorFormatter
# ├─ filters.py      # RequestIdFilter, RedactFilter (+ contextvar helpers)
# ├─ handlers.py     # handler dict factories (console / file / error)
# └─ middleware.py   # RequestIDMiddleware

from .builder import make_dict_config, setup_logging, stop_queue_logging
from .filters import RequestIdFilter, get_request_id, set_request_id
from .middleware import RequestIDMiddleware

__all__ = [
    "setup_logging",
    "make_dict_config",
    "stop_queue_logging",
    "set_request_id",
    "get_request_id",
    "RequestIdFilter",
    "RequestIDMiddleware",
]
