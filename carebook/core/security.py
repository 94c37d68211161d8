from jose import JWTError, jwt

from carebook.core.config import settings


def decode_access_token(token: str) -> str | None:
    """Return the patient id (``sub``) of a valid access token, else None.

    Tokens are minted by the external auth service with the shared secret.
    """
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.algorithm]
        )
        if payload.get("type") != "access":
            return None
        sub = payload.get("sub")
        return str(sub) if sub else None
    except JWTError:
        return None
