"""Concrete authentication guards and a basic user record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, ClassVar, Mapping, Optional

from .auth import Authenticatable, Recaller, UserNotFoundError, UserProvider, new_recaller_string
from .cookie import EncryptableCookieManager, with_max_age
from .session import SessionManager
from .util import random_token
from .web import NoCookieError, Request

_REMEMBER_TOKEN_BYTES = 45


class NullGuard:
    """A guard that never has a user; assigning one is ignored."""

    user: ClassVar[Optional[Authenticatable]] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "user":
            return
        super().__setattr__(name, value)

    def id(self) -> Any:
        return self.user.auth_identifier if self.user is not None else None

    def validate(self, credentials: Mapping[str, Any]) -> bool:
        """Credentials never validate against a guard without users."""
        return self.has_user()

    def check(self) -> bool:
        return self.user is not None

    def guest(self) -> bool:
        return not self.check()

    def has_user(self) -> bool:
        return self.check()


@dataclass
class SessionGuard:
    """Authenticates through the session, with an optional remember-me cookie."""

    name: str
    session: SessionManager
    cookie: EncryptableCookieManager
    provider: UserProvider
    remember_duration: timedelta = timedelta(0)
    request: Optional[Request] = None
    user: Optional[Authenticatable] = field(default=None, init=False)

    def login_name(self) -> str:
        """Return the session key holding the logged-in user's id."""
        return f"login_{self.name}"

    def recaller_name(self) -> str:
        """Return the name of the remember-me cookie."""
        return f"remember_{self.name}"

    def id(self) -> Any:
        if self.user is None:
            return None
        return self.user.auth_identifier

    def validate(self, credentials: Mapping[str, Any]) -> bool:
        """Tell whether the credentials belong to a user, without logging in."""
        _, valid = self._validate(credentials)
        return valid

    def _validate(self, credentials: Mapping[str, Any]) -> tuple[Optional[Authenticatable], bool]:
        try:
            user = self.provider.retrieve_by_credentials(credentials)
        except UserNotFoundError:
            return None, False
        return user, self.provider.validate_credentials(user, credentials)

    def check(self) -> bool:
        return self.user is not None

    def has_user(self) -> bool:
        return self.user is not None

    def guest(self) -> bool:
        return not self.check()

    def attempt(self, credentials: Mapping[str, Any], remember: bool) -> bool:
        """Log in with credentials; return whether they were valid."""
        user, valid = self._validate(credentials)
        if not valid or user is None:
            return False
        self.provider.rehash_password_if_required(user, credentials, False)
        self.login(user, remember)
        return True

    def once(self, credentials: Mapping[str, Any]) -> bool:
        """Log a user in for this request only, without sessions or cookies."""
        user, valid = self._validate(credentials)
        if not valid or user is None:
            return False
        self.provider.rehash_password_if_required(user, credentials, False)
        self.user = user
        return True

    def once_using_id(self, identifier: Any) -> bool:
        """Log the given user in for this request only; lookup errors propagate."""
        self.user = self.provider.retrieve_by_id(identifier)
        return True

    def login(self, user: Authenticatable, remember: bool) -> None:
        self._update_session(user.auth_identifier)
        if remember:
            self._ensure_remember_token_is_set(user)
            self._create_recaller(user)
        self.cookie.encryption().set(
            self.session.name,
            self.session.store.id,
            with_max_age(int(self.session.lifetime.total_seconds())),
        )
        self.user = user

    def _ensure_remember_token_is_set(self, user: Authenticatable) -> None:
        if user.remember_token == "":
            self._cycle_remember_token(user)

    def _cycle_remember_token(self, user: Authenticatable) -> None:
        fresh = random_token(_REMEMBER_TOKEN_BYTES)
        user.remember_token = fresh
        self.provider.update_remember_token(user, fresh)

    def _create_recaller(self, user: Authenticatable) -> None:
        recaller = new_recaller_string(
            user.auth_identifier, user.remember_token, user.auth_password
        )
        self.cookie.encryption().set(
            self.recaller_name(),
            recaller,
            with_max_age(int(self.remember_duration.total_seconds())),
        )

    def _update_session(self, identifier: Any) -> None:
        self.session.store.put(self.login_name(), identifier)
        self.session.store.migrate(True)

    def login_using_id(self, identifier: Any, remember: bool) -> None:
        self.login(self.provider.retrieve_by_id(identifier), remember)

    def logout(self) -> None:
        """Forget the user, drop the remember-me cookie and cycle the token."""
        user = self.user
        self._clear_user_data_from_storage()
        if user is not None and user.remember_token != "":
            self._cycle_remember_token(user)
        self.user = None

    def get_recaller(self) -> Recaller:
        """Return the remember-me value, or an empty one if there is no cookie."""
        try:
            value = self.cookie.encryption().get(self.recaller_name())
        except NoCookieError:
            return Recaller("")
        return Recaller(value)

    def restore_auth(self) -> None:
        """Restore the user from the session, falling back to the remember-me cookie."""
        if self._restore_from_session():
            return
        self._restore_from_recaller()

    def _restore_from_session(self) -> bool:
        store = self.session.store
        if not store.has(self.login_name()):
            return False
        try:
            user = self.provider.retrieve_by_id(store.get(self.login_name()))
        except UserNotFoundError:
            return False
        self.user = user
        return True

    def _restore_from_recaller(self) -> bool:
        recaller = self.get_recaller()
        if not recaller or not recaller.valid():
            return False
        try:
            user = self.provider.retrieve_by_token(recaller.id(), recaller.token())
        except UserNotFoundError:
            return False
        self.user = user
        return True

    def _clear_user_data_from_storage(self) -> None:
        self.session.store.remove(self.login_name())
        self.cookie.forget(self.recaller_name())


@dataclass
class User:
    """A basic user record; ``stored_remember_token`` is None when never set."""

    id: int = 0
    username: str = ""
    password: str = field(default="", repr=False)
    stored_remember_token: Optional[str] = field(default=None, repr=False)
    created_at: str = ""
    updated_at: str = ""

    @property
    def auth_identifier_name(self) -> str:
        return "id"

    @property
    def auth_identifier(self) -> Any:
        return self.id

    @property
    def auth_password_name(self) -> str:
        return "password"

    @property
    def auth_password(self) -> str:
        return self.password

    @property
    def remember_token(self) -> str:
        return self.stored_remember_token or ""

    @remember_token.setter
    def remember_token(self, value: str) -> None:
        self.stored_remember_token = value

    @property
    def remember_token_name(self) -> str:
        return "remember_token"