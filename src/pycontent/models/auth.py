"""Authentication models."""

from __future__ import annotations

from pycontent.models._base import ContentBaseModel


class User(ContentBaseModel):
    """Authenticated account."""

    id: int
    username: str
    name: str = ""
    role: str = "user"


class LoginResult(ContentBaseModel):
    """Result of a successful login.

    Parameters
    ----------
    user : User
        The authenticated account.
    token : str
        Bearer token sent with every subsequent request.
    """

    user: User
    token: str
