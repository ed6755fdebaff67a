"""
Authentication utilities for extracting user info from Cognito tokens.
"""
from typing import Optional

from .errors import Unauthenticated


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    try:
        return event['requestContext']['authorizer']['claims']['sub']
    except (KeyError, TypeError):
        return None


def get_user_email(event: dict) -> Optional[str]:
    """Extract user email from Cognito claims."""
    try:
        return event['requestContext']['authorizer']['claims']['email']
    except (KeyError, TypeError):
        return None


def require_user(event: dict) -> str:
    """Return the caller's sub or raise Unauthenticated."""
    user_id = get_user_sub(event)
    if not user_id:
        raise Unauthenticated()
    return user_id
