# removals/transport/security.py
"""
Access control for the monitoring endpoints.

The quote-session API itself is public (it backs the website calculator);
only ``/metrics`` is guarded.
"""
import hmac

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from removals.config import settings
from removals.infra.logging_config import get_logger

logger = get_logger(__name__)

metrics_bearer_scheme = HTTPBearer(
    scheme_name="Metrics Token",
    description="Bearer token for /metrics (METRICS_TOKEN)",
    auto_error=False,
)


def require_metrics_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(metrics_bearer_scheme),
):
    """
    Dependency for the metrics endpoint.

    - ENABLE_METRICS=false: the endpoint does not exist (404)
    - METRICS_TOKEN set: require ``Authorization: Bearer <token>``
    - otherwise open (startup config check warns about this)
    """
    if not settings.enable_metrics:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    if not settings.metrics_token:
        return

    if not credentials:
        logger.warning("Metrics endpoint accessed without token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Constant-time comparison
    if not hmac.compare_digest(credentials.credentials, settings.metrics_token):
        logger.warning(
            "Invalid metrics token attempt",
            extra={"token_prefix": credentials.credentials[:4] if len(credentials.credentials) >= 4 else "***"}
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


def sanitize_error_message(exc: Exception, is_production: bool) -> str:
    """Generic message in production, exception details elsewhere."""
    if is_production:
        return "Internal server error"
    return f"{exc.__class__.__name__}: {exc}"
