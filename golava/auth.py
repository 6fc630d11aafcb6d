"""Authentication contracts, errors and remember-me cookie values."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol


class UserNotFoundError(LookupError):
    """No user matches the lookup."""

    def __init__(self, message: str = "user not found") -> None:
        super().__init__(message)


class UnauthenticatedError(Exception):
    """The request has no authenticated user."""

    def __init__(self, message: str = "unauthenticated") -> None:
        super().__init__(message)


class Authenticatable(Protocol):
    """A user that can be authenticated."""

    @property
    def auth_identifier_name(self) -> str: ...

    @property
    def auth_identifier(self) -> Any: ...

    @property
    def auth_password_name(self) -> str: ...

    @property
    def auth_password(self) -> str: ...

    @property
    def remember_token(self) -> str: ...

    @remember_token.setter
    def remember_token(self, token: str) -> None: ...

    @property
    def remember_token_name(self) -> str: ...


class Guard(Protocol):
    """Knows who, if anyone, made the current request."""

    user: Optional[Authenticatable]

    def check(self) -> bool:
        """Tell whether a user is authenticated."""
        ...

    def guest(self) -> bool:
        """Tell whether no user is authenticated."""
        ...

    def id(self) -> Any:
        """Return the authenticated user's identifier, or None."""
        ...

    def validate(self, credentials: Mapping[str, Any]) -> bool:
        """Tell whether the credentials are valid."""
        ...

    def has_user(self) -> bool:
        """Tell whether a user is set."""
        ...


class StatefulGuard(Guard, Protocol):
    """A guard that can log users in and out."""

    def attempt(self, credentials: Mapping[str, Any], remember: bool) -> bool:
        """Log in with credentials; return whether they were valid."""
        ...

    def once(self, credentials: Mapping[str, Any]) -> bool:
        """Log a user in for this request only, without sessions or cookies."""
        ...

    def once_using_id(self, identifier: Any) -> bool:
        """Log the given user in for this request only."""
        ...

    def login(self, user: Authenticatable, remember: bool) -> None:
        """Log the user in."""
        ...

    def login_using_id(self, identifier: Any, remember: bool) -> None:
        """Log the user with the given identifier in."""
        ...

    def logout(self) -> None:
        """Log the current user out."""
        ...


class UserProvider(Protocol):
    """Looks users up and checks their credentials; lookups raise UserNotFoundError."""

    def retrieve_by_id(self, identifier: Any) -> Authenticatable: ...

    def retrieve_by_token(self, identifier: Any, token: str) -> Authenticatable: ...

    def update_remember_token(self, user: Authenticatable, token: str) -> None: ...

    def retrieve_by_credentials(self, credentials: Mapping[str, Any]) -> Authenticatable: ...

    def validate_credentials(
        self, user: Authenticatable, credentials: Mapping[str, Any]
    ) -> bool: ...

    def rehash_password_if_required(
        self, user: Authenticatable, credentials: Mapping[str, Any], force: bool
    ) -> None: ...


class Recaller(str):
    """A remember-me value of the form ``id|token|hash``."""

    def _parts(self) -> list[str]:
        return self.split("|", 2)

    def _part(self, position: int) -> str:
        parts = self._parts()
        if len(parts) <= position:
            raise ValueError("malformed recaller")
        return parts[position]

    def valid(self) -> bool:
        parts = self._parts()
        return (
            len(parts) == 3
            or parts[0].strip() != ""
            or (len(parts) > 1 and parts[1].strip() != "")
        )

    def id(self) -> str:
        return self._part(0)

    def token(self) -> str:
        return self._part(1)

    def hash(self) -> str:
        return self._part(2)


def new_recaller_string(identifier: Any, token: str, password_hash: str) -> str:
    """Join the parts of a remember-me value."""
    return f"{identifier}|{token}|{password_hash}"


def new_recaller(identifier: Any, token: str, password_hash: str) -> Recaller:
    return Recaller(new_recaller_string(identifier, token, password_hash))