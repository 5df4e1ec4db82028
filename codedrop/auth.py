import hmac

from codedrop.errors import UnauthorizedError


class BearerTokenVerifier:
    """Checks ``Authorization: Bearer <token>`` against a shared secret.

    With no token configured every request passes.
    """

    def __init__(self, token: str | None):
        self.token = token.encode("utf-8") if token else None

    @property
    def enabled(self) -> bool:
        return self.token is not None

    def verify(self, authorization: str | None) -> bool:
        if self.token is None:
            return True
        scheme, _, supplied = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not supplied:
            return False
        return hmac.compare_digest(self.token, supplied.strip().encode("utf-8"))

    def require(self, authorization: str | None) -> None:
        if not self.verify(authorization):
            raise UnauthorizedError("Unauthorized")
