"""HTTP middleware: request ID and correlation ID.

Applied in main app; order matters (first added = outermost).
"""

from arbor.middleware.request_ids import CorrelationIDMiddleware, RequestIDMiddleware

__all__ = ["CorrelationIDMiddleware", "RequestIDMiddleware"]
