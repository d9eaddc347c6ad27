"""Bearer token check for the ``/api`` routes."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import HTTPException, Request
from jose import JWTError, jwt

from WorldcatPool.utils.log import log


def bearer_token(authorization: str) -> str | None:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Returns:
        The token, or ``None`` when the header is missing or malformed.
    """
    parts = authorization.split()
    if len(parts) != 2 or parts[0] != "Bearer" or not parts[1]:
        return None
    return parts[1]


def bearer_auth(jwt_key: str) -> Callable[[Request], dict[str, Any] | None]:
    """Build a FastAPI dependency validating the aggregator's JWT.

    Requests without a bearer token are let through. A literal
    ``undefined`` token, or any token that is not an HS256 JWT signed with
    ``jwt_key``, is rejected with 401. With an empty ``jwt_key`` no token
    can verify, so every bearer token is rejected.

    Args:
        jwt_key: Shared signing key.

    Returns:
        Dependency returning the verified claims, or ``None`` when no token
        was verified.
    """

    def require_bearer(request: Request) -> dict[str, Any] | None:
        token = bearer_token(request.headers.get("Authorization", ""))
        if token is None:
            log.info("No bearer token; skipping auth")
            return None
        if token == "undefined":
            log.warning("Authentication failed; bearer token is undefined")
            raise HTTPException(status_code=401, detail="Unauthorized")
        if not jwt_key:
            log.warning("Authentication failed; no JWT key configured to verify bearer token")
            raise HTTPException(status_code=401, detail="Unauthorized")
        try:
            claims = jwt.decode(token, jwt_key, algorithms=["HS256"])
        except JWTError as error:
            log.warning("JWT signature is invalid: %s", error)
            raise HTTPException(status_code=401, detail="Unauthorized") from error
        request.state.claims = claims
        return claims

    return require_bearer
