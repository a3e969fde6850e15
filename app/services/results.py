"""
AuthResult — the explicit outcome of authenticate() and reconcile().

Either ok=True with the resolved principal, or ok=False with an ErrorKind.
Routers call unwrap(), which raises the matching PoolOpsError so the
registered exception handlers produce the HTTP response.
"""

from dataclasses import dataclass

from app.exceptions import ErrorKind, error_for
from app.models.user import User


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    principal: User | None = None
    error: ErrorKind | None = None
    # Set only when an inactive account was reactivated by OAuth sign-in
    reactivated: bool = False

    @classmethod
    def success(cls, principal: User, reactivated: bool = False) -> "AuthResult":
        return cls(ok=True, principal=principal, reactivated=reactivated)

    @classmethod
    def failure(cls, error: ErrorKind) -> "AuthResult":
        return cls(ok=False, error=error)

    def unwrap(self) -> User:
        """Return the principal, or raise the exception for the error kind."""
        if not self.ok:
            raise error_for(self.error)
        return self.principal
