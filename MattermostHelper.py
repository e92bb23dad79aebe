"""
Mattermost Admin Helper Service
===============================
A general-purpose REST client for administering a Mattermost server.
Supports: bots, teams, channels, users and webhooks (incoming & outgoing).
Authentication via personal access token or username/password (+MFA) login.
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Callable, Iterator

import requests
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logger = logging.getLogger("MattermostHelper")

TEAM_OPEN = "O"
TEAM_INVITE = "I"

DEFAULT_PER_PAGE = 200


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class ApiError(Exception):
    """A non-2xx response from the server, decoded from its JSON error body."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        error_id: str = "",
        detailed_error: str = "",
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_id = error_id
        self.detailed_error = detailed_error

    def __str__(self) -> str:
        if self.detailed_error:
            return f"{self.message}, {self.detailed_error}"
        return self.message

    @classmethod
    def from_response(cls, resp: requests.Response) -> "ApiError":
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return cls(
            message=body.get("message") or resp.reason or f"HTTP {resp.status_code}",
            status_code=resp.status_code,
            error_id=body.get("id", ""),
            detailed_error=body.get("detailed_error", ""),
        )


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------
class _Entity:
    """Shared JSON helpers for the server entities below."""

    @classmethod
    def from_json(cls, data: dict):
        known = {f.name for f in fields(cls) if f.name != "raw"}  # type: ignore[arg-type]
        kwargs = {k: v for k, v in data.items() if k in known and v is not None}
        return cls(raw=dict(data), **kwargs)  # type: ignore[call-arg]

    def to_dict(self) -> dict:
        data = asdict(self)  # type: ignore[call-overload]
        data.pop("raw", None)
        return data

    def to_payload(self) -> dict:
        """Full object body for PUT updates: raw server JSON overlaid with our fields."""
        payload = dict(self.raw)  # type: ignore[attr-defined]
        payload.update(self.to_dict())
        return payload


@dataclass
class User(_Entity):
    id: str = ""
    username: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    nickname: str = ""
    roles: str = ""
    delete_at: int = 0
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class Bot(_Entity):
    user_id: str = ""
    username: str = ""
    display_name: str = ""
    description: str = ""
    owner_id: str = ""
    create_at: int = 0
    update_at: int = 0
    delete_at: int = 0
    raw: dict = field(default_factory=dict, repr=False)

    def to_create_payload(self) -> dict:
        payload = {"username": self.username}
        if self.display_name:
            payload["display_name"] = self.display_name
        if self.description:
            payload["description"] = self.description
        return payload


@dataclass
class Team(_Entity):
    id: str = ""
    name: str = ""
    display_name: str = ""
    description: str = ""
    email: str = ""
    type: str = TEAM_OPEN
    allow_open_invite: bool = False
    delete_at: int = 0
    raw: dict = field(default_factory=dict, repr=False)

    @property
    def is_archived(self) -> bool:
        return self.delete_at > 0

    def to_create_payload(self) -> dict:
        payload = {
            "name": self.name,
            "display_name": self.display_name,
            "type": self.type,
        }
        if self.email:
            payload["email"] = self.email
        return payload


@dataclass
class Channel(_Entity):
    id: str = ""
    team_id: str = ""
    name: str = ""
    display_name: str = ""
    type: str = ""
    delete_at: int = 0
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class IncomingWebhook(_Entity):
    id: str = ""
    channel_id: str = ""
    team_id: str = ""
    user_id: str = ""
    display_name: str = ""
    description: str = ""
    username: str = ""
    icon_url: str = ""
    channel_locked: bool = False
    create_at: int = 0
    update_at: int = 0
    delete_at: int = 0
    raw: dict = field(default_factory=dict, repr=False)

    def to_create_payload(self) -> dict:
        payload = {
            "channel_id": self.channel_id,
            "display_name": self.display_name,
            "description": self.description,
            "username": self.username,
            "icon_url": self.icon_url,
            "channel_locked": self.channel_locked,
        }
        if self.user_id:
            payload["user_id"] = self.user_id
        return payload


@dataclass
class OutgoingWebhook(_Entity):
    id: str = ""
    token: str = ""
    creator_id: str = ""
    channel_id: str = ""
    team_id: str = ""
    trigger_words: list = field(default_factory=list)
    trigger_when: int = 0
    callback_urls: list = field(default_factory=list)
    display_name: str = ""
    description: str = ""
    content_type: str = ""
    username: str = ""
    icon_url: str = ""
    create_at: int = 0
    update_at: int = 0
    delete_at: int = 0
    raw: dict = field(default_factory=dict, repr=False)

    def to_create_payload(self) -> dict:
        payload = {
            "team_id": self.team_id,
            "trigger_words": list(self.trigger_words),
            "trigger_when": self.trigger_when,
            "callback_urls": list(self.callback_urls),
            "display_name": self.display_name,
            "description": self.description,
            "content_type": self.content_type,
            "username": self.username,
            "icon_url": self.icon_url,
        }
        if self.channel_id:
            payload["channel_id"] = self.channel_id
        if self.creator_id:
            payload["creator_id"] = self.creator_id
        return payload


@dataclass
class ClientSettings:
    """Connection settings read from the environment / a .env file."""
    url: str
    token: str | None = None
    username: str | None = None
    password: str | None = None
    mfa_token: str | None = None
    timeout: float = 30.0
    verify_tls: bool = True


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------
def iter_pages(
    fetch_page: Callable[[int, int], list],
    per_page: int = DEFAULT_PER_PAGE,
) -> Iterator[list]:
    """Yield successive non-empty pages until the server returns a short page."""
    page = 0
    while True:
        items = fetch_page(page, per_page)
        if not items:
            return
        yield items
        if len(items) < per_page:
            return
        page += 1


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class MattermostApiService:
    """General-purpose Mattermost REST API (v4) client."""

    API_VERSION = "v4"

    def __init__(
        self,
        server_url: str,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        verify_tls: bool = True,
    ):
        self.server_url = server_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.verify_tls = verify_tls

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def login(self, username: str, password: str, mfa_token: str | None = None) -> User:
        """
        Log in with username/password (and an MFA code when enabled).

        The session token comes back in the ``Token`` response header and is
        used for every later call.
        """
        body = {"login_id": username, "password": password}
        if mfa_token:
            body["token"] = mfa_token
        resp = requests.post(
            f"{self._base_url}/users/login",
            json=body,
            timeout=self.timeout,
            verify=self.verify_tls,
        )
        if not resp.ok:
            raise ApiError.from_response(resp)
        self.token = resp.headers.get("Token")
        logger.debug("Logged in as %s", username)
        return User.from_json(resp.json())

    def get_me(self) -> User:
        return User.from_json(self._request("GET", "/users/me"))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @property
    def _base_url(self) -> str:
        return f"{self.server_url}/api/{self.API_VERSION}"

    def _headers(self) -> dict:
        headers = {
            "Accept": "application/json",
            "X-Requested-With": "XMLHttpRequest",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: Any = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        logger.debug("%s %s params=%s", method, url, params)
        resp = requests.request(
            method,
            url,
            headers=self._headers(),
            params=params,
            json=json,
            timeout=self.timeout,
            verify=self.verify_tls,
        )
        if not resp.ok:
            err = ApiError.from_response(resp)
            logger.debug("%s %s failed: HTTP %s %s", method, url, resp.status_code, err)
            raise err
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    def get_user(self, user_id: str) -> User:
        return User.from_json(self._request("GET", f"/users/{user_id}"))

    def get_user_by_username(self, username: str) -> User:
        return User.from_json(self._request("GET", f"/users/username/{username}"))

    def get_user_by_email(self, email: str) -> User:
        return User.from_json(self._request("GET", f"/users/email/{email}"))

    def get_users_by_ids(self, user_ids: list[str]) -> list[User]:
        data = self._request("POST", "/users/ids", json=list(user_ids))
        return [User.from_json(u) for u in data or []]

    # ------------------------------------------------------------------
    # Bots
    # ------------------------------------------------------------------
    def create_bot(self, bot: Bot) -> Bot:
        return Bot.from_json(self._request("POST", "/bots", json=bot.to_create_payload()))

    def patch_bot(self, bot_user_id: str, patch: dict) -> Bot:
        return Bot.from_json(self._request("PUT", f"/bots/{bot_user_id}", json=patch))

    def get_bots(
        self,
        page: int = 0,
        per_page: int = DEFAULT_PER_PAGE,
        *,
        include_deleted: bool = False,
        only_orphaned: bool = False,
    ) -> list[Bot]:
        params: dict[str, Any] = {"page": page, "per_page": per_page}
        if include_deleted:
            params["include_deleted"] = "true"
        if only_orphaned:
            params["only_orphaned"] = "true"
        data = self._request("GET", "/bots", params=params)
        return [Bot.from_json(b) for b in data or []]

    def enable_bot(self, bot_user_id: str) -> Bot:
        return Bot.from_json(self._request("POST", f"/bots/{bot_user_id}/enable"))

    def disable_bot(self, bot_user_id: str) -> Bot:
        return Bot.from_json(self._request("POST", f"/bots/{bot_user_id}/disable"))

    def assign_bot(self, bot_user_id: str, owner_id: str) -> Bot:
        return Bot.from_json(
            self._request("POST", f"/bots/{bot_user_id}/assign/{owner_id}")
        )

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------
    def create_team(self, team: Team) -> Team:
        return Team.from_json(self._request("POST", "/teams", json=team.to_create_payload()))

    def get_team(self, team_id: str) -> Team:
        return Team.from_json(self._request("GET", f"/teams/{team_id}"))

    def get_team_by_name(self, name: str) -> Team:
        return Team.from_json(self._request("GET", f"/teams/name/{name}"))

    def get_all_teams(self, page: int = 0, per_page: int = DEFAULT_PER_PAGE) -> list[Team]:
        data = self._request("GET", "/teams", params={"page": page, "per_page": per_page})
        return [Team.from_json(t) for t in data or []]

    def search_teams(self, term: str) -> list[Team]:
        data = self._request("POST", "/teams/search", json={"term": term})
        # Paginated searches wrap the list as {"teams": [...], "total_count": n}
        if isinstance(data, dict):
            data = data.get("teams", [])
        return [Team.from_json(t) for t in data or []]

    def patch_team(self, team_id: str, patch: dict) -> Team:
        return Team.from_json(self._request("PUT", f"/teams/{team_id}/patch", json=patch))

    def update_team_privacy(self, team_id: str, privacy: str) -> Team:
        return Team.from_json(
            self._request("PUT", f"/teams/{team_id}/privacy", json={"privacy": privacy})
        )

    def archive_team(self, team_id: str) -> None:
        self._request("DELETE", f"/teams/{team_id}")

    def permanent_delete_team(self, team_id: str) -> None:
        self._request("DELETE", f"/teams/{team_id}", params={"permanent": "true"})

    def restore_team(self, team_id: str) -> Team:
        return Team.from_json(self._request("POST", f"/teams/{team_id}/restore"))

    def add_team_member(self, team_id: str, user_id: str) -> dict:
        return self._request(
            "POST",
            f"/teams/{team_id}/members",
            json={"team_id": team_id, "user_id": user_id},
        )

    def remove_team_member(self, team_id: str, user_id: str) -> None:
        self._request("DELETE", f"/teams/{team_id}/members/{user_id}")

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------
    def get_channel(self, channel_id: str) -> Channel:
        return Channel.from_json(self._request("GET", f"/channels/{channel_id}"))

    def get_channel_by_name(self, team_id: str, name: str) -> Channel:
        return Channel.from_json(
            self._request("GET", f"/teams/{team_id}/channels/name/{name}")
        )

    # ------------------------------------------------------------------
    # Webhooks
    # ------------------------------------------------------------------
    def get_incoming_webhooks_for_team(
        self, team_id: str, page: int = 0, per_page: int = DEFAULT_PER_PAGE
    ) -> list[IncomingWebhook]:
        data = self._request(
            "GET",
            "/hooks/incoming",
            params={"team_id": team_id, "page": page, "per_page": per_page},
        )
        return [IncomingWebhook.from_json(h) for h in data or []]

    def get_outgoing_webhooks_for_team(
        self, team_id: str, page: int = 0, per_page: int = DEFAULT_PER_PAGE
    ) -> list[OutgoingWebhook]:
        data = self._request(
            "GET",
            "/hooks/outgoing",
            params={"team_id": team_id, "page": page, "per_page": per_page},
        )
        return [OutgoingWebhook.from_json(h) for h in data or []]

    def get_incoming_webhook(self, hook_id: str) -> IncomingWebhook:
        return IncomingWebhook.from_json(self._request("GET", f"/hooks/incoming/{hook_id}"))

    def get_outgoing_webhook(self, hook_id: str) -> OutgoingWebhook:
        return OutgoingWebhook.from_json(self._request("GET", f"/hooks/outgoing/{hook_id}"))

    def create_incoming_webhook(self, hook: IncomingWebhook) -> IncomingWebhook:
        return IncomingWebhook.from_json(
            self._request("POST", "/hooks/incoming", json=hook.to_create_payload())
        )

    def update_incoming_webhook(self, hook: IncomingWebhook) -> IncomingWebhook:
        return IncomingWebhook.from_json(
            self._request("PUT", f"/hooks/incoming/{hook.id}", json=hook.to_payload())
        )

    def delete_incoming_webhook(self, hook_id: str) -> None:
        self._request("DELETE", f"/hooks/incoming/{hook_id}")

    def create_outgoing_webhook(self, hook: OutgoingWebhook) -> OutgoingWebhook:
        return OutgoingWebhook.from_json(
            self._request("POST", "/hooks/outgoing", json=hook.to_create_payload())
        )

    def update_outgoing_webhook(self, hook: OutgoingWebhook) -> OutgoingWebhook:
        return OutgoingWebhook.from_json(
            self._request("PUT", f"/hooks/outgoing/{hook.id}", json=hook.to_payload())
        )

    def delete_outgoing_webhook(self, hook_id: str) -> None:
        self._request("DELETE", f"/hooks/outgoing/{hook_id}")


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------
def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def load_settings(env_path: str = ".env") -> ClientSettings:
    """Read connection settings from a .env file and the process environment."""
    load_dotenv(env_path)
    url = os.environ.get("MMCTL_URL", "").strip()
    if not url:
        raise ValueError("MMCTL_URL is not set (add it to the environment or the .env file)")
    timeout_raw = os.environ.get("MMCTL_TIMEOUT", "30")
    try:
        timeout = float(timeout_raw)
    except ValueError:
        raise ValueError(f"MMCTL_TIMEOUT must be a number of seconds, got '{timeout_raw}'") from None
    return ClientSettings(
        url=url,
        token=os.environ.get("MMCTL_TOKEN") or None,
        username=os.environ.get("MMCTL_USERNAME") or None,
        password=os.environ.get("MMCTL_PASSWORD") or None,
        mfa_token=os.environ.get("MMCTL_MFA_TOKEN") or None,
        timeout=timeout,
        verify_tls=not _env_flag("MMCTL_INSECURE_TLS"),
    )


def create_service_from_settings(settings: ClientSettings) -> MattermostApiService:
    """
    Instantiate and authenticate the service.

    * A token is verified with ``GET /users/me``.
    * Otherwise username/password (and the optional MFA code) are used to log in.
    """
    svc = MattermostApiService(
        settings.url,
        settings.token,
        timeout=settings.timeout,
        verify_tls=settings.verify_tls,
    )
    if settings.token:
        me = svc.get_me()
        logger.debug("Token belongs to %s", me.username)
    elif settings.username and settings.password:
        svc.login(settings.username, settings.password, settings.mfa_token)
    else:
        raise ValueError(
            "No credentials configured: set MMCTL_TOKEN or MMCTL_USERNAME and MMCTL_PASSWORD"
        )
    return svc


def create_service_from_env(env_path: str = ".env") -> MattermostApiService:
    """Instantiate the service using values from a .env file."""
    return create_service_from_settings(load_settings(env_path))

