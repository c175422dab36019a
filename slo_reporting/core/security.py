from fastapi import Header, HTTPException, status

from slo_reporting.core.config import settings


def verify_scheduler_token(x_scheduler_token: str = Header(...)):
    """
    Verify the scheduler secret token from request header.

    Args:
        x_scheduler_token: Token from X-Scheduler-Token header

    Raises:
        HTTPException: If token is invalid or missing

    Returns:
        bool: True if token is valid
    """
    if not settings.SCHEDULER_SECRET_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Scheduler token not configured on server",
        )

    if x_scheduler_token != settings.SCHEDULER_SECRET_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid scheduler token",
        )

    return True
