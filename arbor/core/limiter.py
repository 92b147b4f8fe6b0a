"""Rate limiter instance for SlowAPI.

Shared so main (app.state.limiter) and route modules use the same instance.
Limits here throttle the admin API; workflow execution limits are enforced
by the rate guard, not by SlowAPI.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

WRITE_ENDPOINT_LIMIT = "120/minute"
EMIT_LIMIT = "600/minute"
PROCESS_LIMIT = "30/minute"

limit_writes = limiter.limit(WRITE_ENDPOINT_LIMIT)
limit_emit = limiter.limit(EMIT_LIMIT)
limit_process = limiter.limit(PROCESS_LIMIT)
