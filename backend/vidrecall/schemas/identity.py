"""
Owner identity schemas.

Chunks and searches are scoped by an ``OwnerKey``: either a registered
user's numeric ID or an anonymous session's string ID. The key is resolved
once at the request boundary and passed explicitly to the store and search
services.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


USER_PREFIX = "user:"
SESSION_PREFIX = "session:"


class UserId(BaseModel):
    """A registered user."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["user"] = "user"
    user_id: int = Field(description="Registered user ID", ge=1)

    @property
    def is_anonymous(self) -> bool:
        return False

    @property
    def storage_key(self) -> str:
        return f"{USER_PREFIX}{self.user_id}"

    def __str__(self) -> str:
        return self.storage_key


class AnonymousSessionId(BaseModel):
    """An anonymous browser session."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["session"] = "session"
    session_id: str = Field(description="Anonymous session ID", min_length=1)

    @property
    def is_anonymous(self) -> bool:
        return True

    @property
    def storage_key(self) -> str:
        return f"{SESSION_PREFIX}{self.session_id}"

    def __str__(self) -> str:
        return self.storage_key


OwnerKey = Annotated[Union[UserId, AnonymousSessionId], Field(discriminator="kind")]


class ResolvedOwner(BaseModel):
    """What the identity resolver hands to the core for one request."""

    model_config = ConfigDict(frozen=True)

    owner_key: OwnerKey
    is_anonymous: bool


def parse_owner_key(value: str) -> Union[UserId, AnonymousSessionId]:
    """
    Parse a rendered storage key back into an OwnerKey.

    Raises:
        ValueError: If the key has no known prefix
    """
    if value.startswith(USER_PREFIX):
        return UserId(user_id=int(value[len(USER_PREFIX):]))
    if value.startswith(SESSION_PREFIX):
        return AnonymousSessionId(session_id=value[len(SESSION_PREFIX):])
    raise ValueError(f"Unrecognized owner key: {value!r}")


def resolve_owner(user_id: int | None = None, anonymous_session_id: str | None = None) -> ResolvedOwner:
    """
    Build a ResolvedOwner from already-authenticated request attributes.

    A registered user wins over a session ID when both are present.

    Raises:
        ValueError: If neither identity is available
    """
    if user_id is not None:
        return ResolvedOwner(owner_key=UserId(user_id=user_id), is_anonymous=False)
    if anonymous_session_id:
        return ResolvedOwner(
            owner_key=AnonymousSessionId(session_id=anonymous_session_id),
            is_anonymous=True,
        )
    raise ValueError("Request has neither a user ID nor an anonymous session ID")
