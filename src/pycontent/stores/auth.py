"""Auth store: current user and bearer token."""

from __future__ import annotations

import logging

from pycontent.exceptions import ContentValidationError
from pycontent.models.auth import LoginResult, User
from pycontent.store import Store, StoreRegistry, StoreSetup, define_store
from pycontent.stores._services import services

_logger = logging.getLogger(__name__)


def _setup(registry: StoreRegistry) -> StoreSetup:
    api = services(registry).api

    async def login(store: Store, username: str, password: str) -> LoginResult:
        if not isinstance(username, str) or not username.strip():
            raise ContentValidationError("username must be a non-empty string")
        if not isinstance(password, str) or not password:
            raise ContentValidationError("password must be a non-empty string")

        store.patch({"loading": True, "error": None})
        try:
            result = await api.login(username.strip(), password)
        except Exception as exc:
            store.state["error"] = str(exc)
            _logger.debug("Login failed for %s: %s", username, exc)
            raise
        finally:
            store.state["loading"] = False

        store.patch({"user": result.user, "token": result.token})
        _logger.debug("Logged in as %s", result.user.username)
        return result

    def logout(store: Store) -> None:
        store.patch({"user": None, "token": None, "error": None})

    def clear_error(store: Store) -> None:
        store.state["error"] = None

    return StoreSetup(
        state={"user": None, "token": None, "loading": False, "error": None},
        getters={
            "is_authenticated": lambda store: bool(store.state["token"]),
            "auth_headers": lambda store: (
                {"Authorization": f"Bearer {store.state['token']}"} if store.state["token"] else {}
            ),
        },
        actions={"login": login, "logout": logout, "clear_error": clear_error},
    )


use_auth_store = define_store(
    "auth",
    _setup,
    persist=["user", "token"],
    persist_types={"user": User | None, "token": str | None},
)
