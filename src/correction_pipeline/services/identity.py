"""Caller identity checks shared by every service."""

from typing import Optional

from correction_pipeline.exceptions import UnauthorizedError


def require_user_id(user_id: Optional[str]) -> str:
    """Returns the verified user id supplied by the identity provider.

    Raises:
        UnauthorizedError: If no identity was supplied.
    """
    if not user_id or not isinstance(user_id, str) or not user_id.strip():
        raise UnauthorizedError("Invalid token")
    return user_id
