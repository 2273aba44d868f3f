"""Identity of the signed-in user.

The OAuth sign-in flow lives outside this package.  The sync layer only
needs to know whether a user is signed in and under which ``uid`` their
data is stored, which ``IdentityProvider`` exposes.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, Field


class Identity(BaseModel):
    """A signed-in user as reported by the auth provider."""

    uid: str = Field(min_length=1)
    display_name: str | None = Field(default=None, alias="displayName")
    email: str | None = None
    photo_url: str | None = Field(default=None, alias="photoURL")

    model_config = {"frozen": True, "populate_by_name": True}


class IdentityProvider(Protocol):
    """Protocol for anything that can report the current user."""

    def current_user(self) -> Identity | None:
        """Return the signed-in user, or ``None`` when signed out."""
        ...  # pragma: no cover


class StaticIdentityProvider:
    """Identity fixed at construction time (configuration, tests).

    Args:
        identity: The signed-in user, or ``None`` for signed out.
    """

    def __init__(self, identity: Identity | None = None) -> None:
        self._identity = identity

    def current_user(self) -> Identity | None:
        return self._identity

    def sign_in(self, identity: Identity) -> None:
        self._identity = identity

    def sign_out(self) -> None:
        self._identity = None
