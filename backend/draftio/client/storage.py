"""
Client state that survives restarts.

Each store is an explicit container with one serialization boundary: it
loads its JSON file once on construction and writes the persisted subset
back after every change. Only the keys listed in `persisted_keys` ever
reach disk.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from draftio.client.models import AuthTokens, SessionUser
from draftio.core.config import settings

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], None]


class PersistentStore:
    name: str = "store"
    persisted_keys: Tuple[str, ...] = ()

    def __init__(self, directory: Optional[str] = None):
        self.path = Path(directory or settings.CLIENT_STATE_DIR) / f"{self.name}.json"
        self._state: Dict[str, Any] = self.initial_state()
        self._listeners: List[Listener] = []
        self._load()

    def initial_state(self) -> Dict[str, Any]:
        return {}

    def serialize(self, state: Dict[str, Any]) -> Dict[str, Any]:
        return {key: state[key] for key in self.persisted_keys}

    def deserialize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {key: data[key] for key in self.persisted_keys if key in data}

    @property
    def state(self) -> Dict[str, Any]:
        return dict(self._state)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call `listener(state)` after every change. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set(self, **changes) -> None:
        self._state.update(changes)
        self._save()
        for listener in list(self._listeners):
            listener(self.state)

    def _load(self) -> None:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable {self.name} state at {self.path}: {e}")
            return

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed {self.name} state at {self.path}")
            return

        try:
            self._state.update(self.deserialize(data))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring invalid {self.name} state at {self.path}: {e}")

    def _save(self) -> None:
        # The in-memory state stays authoritative when the disk write fails
        tmp_path = self.path.with_suffix(".json.tmp")
        try:
            os.makedirs(self.path.parent, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(self.serialize(self._state), f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(f"Could not persist {self.name} state to {self.path}: {e}")


class SessionStore(PersistentStore):
    """Signed-in user and bearer tokens."""
    name = "auth-storage"
    persisted_keys = ("user", "tokens", "is_authenticated")

    def initial_state(self) -> Dict[str, Any]:
        return {
            "user": None,
            "tokens": None,
            "is_authenticated": False,
            "is_loading": False,
        }

    def serialize(self, state: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "user": state["user"].model_dump() if state["user"] else None,
            "tokens": state["tokens"].model_dump() if state["tokens"] else None,
            "is_authenticated": state["is_authenticated"],
        }

    def deserialize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        user = SessionUser.model_validate(data["user"]) if data.get("user") else None
        tokens = AuthTokens.model_validate(data["tokens"]) if data.get("tokens") else None
        return {
            "user": user,
            "tokens": tokens,
            "is_authenticated": bool(data.get("is_authenticated")) and user is not None,
        }

    @property
    def user(self) -> Optional[SessionUser]:
        return self._state["user"]

    @property
    def tokens(self) -> Optional[AuthTokens]:
        return self._state["tokens"]

    @property
    def is_authenticated(self) -> bool:
        return self._state["is_authenticated"]

    @property
    def is_loading(self) -> bool:
        return self._state["is_loading"]

    @property
    def access_token(self) -> Optional[str]:
        tokens = self._state["tokens"]
        return tokens.access_token if tokens else None

    def login(self, user: SessionUser, tokens: AuthTokens) -> None:
        self.set(user=user, tokens=tokens, is_authenticated=True, is_loading=False)

    def logout(self) -> None:
        self.set(user=None, tokens=None, is_authenticated=False, is_loading=False)

    def set_user(self, user: Optional[SessionUser]) -> None:
        self.set(user=user, is_authenticated=user is not None)

    def set_tokens(self, tokens: Optional[AuthTokens]) -> None:
        self.set(tokens=tokens)

    def update_user(self, **fields) -> None:
        if self.user is None:
            return
        self.set(user=self.user.model_copy(update=fields))

    def set_loading(self, loading: bool) -> None:
        self.set(is_loading=loading)


THEMES = ("light", "dark", "system")


class PreferencesStore(PersistentStore):
    """Theme and layout preferences."""
    name = "ui-storage"
    persisted_keys = ("theme", "sidebar_open")

    def initial_state(self) -> Dict[str, Any]:
        return {
            "theme": "system",
            "sidebar_open": True,
            "message_panel_open": False,
        }

    def deserialize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        state = super().deserialize(data)
        if state.get("theme") not in THEMES:
            state.pop("theme", None)
        if "sidebar_open" in state:
            state["sidebar_open"] = bool(state["sidebar_open"])
        return state

    @property
    def theme(self) -> str:
        return self._state["theme"]

    @property
    def sidebar_open(self) -> bool:
        return self._state["sidebar_open"]

    @property
    def message_panel_open(self) -> bool:
        return self._state["message_panel_open"]

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        self.set(theme=theme)

    def toggle_sidebar(self) -> None:
        self.set(sidebar_open=not self.sidebar_open)

    def set_sidebar_open(self, is_open: bool) -> None:
        self.set(sidebar_open=is_open)

    def toggle_message_panel(self) -> None:
        self.set(message_panel_open=not self.message_panel_open)
