# LocalPass - API Security
#
# The local API is only meant for the desktop frontend that launched it.
# A random session token is generated per app instance and must be sent in
# the X-Session-Token header on every vault call, so other local processes
# cannot drive the vault just by finding the port.

import secrets

from fastapi import Header, HTTPException, Request, status


def initialize_session_token(app) -> str:
    """
    Generate a new session token for this app instance.

    Returns:
        The generated token (handed to the frontend at launch)
    """
    token = secrets.token_urlsafe(32)
    app.state.session_token = token
    return token


async def verify_session_token(
    request: Request,
    x_session_token: str = Header(None),
) -> str:
    """
    FastAPI dependency to verify the session token.

    Raises:
        HTTPException: 503 if no token was issued, 401 if missing or invalid
    """
    expected = getattr(request.app.state, "session_token", None)
    if expected is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session token not initialized",
        )

    if x_session_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Session-Token header",
        )

    # Constant-time comparison to prevent timing attacks
    if not secrets.compare_digest(x_session_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token",
        )

    return x_session_token
