#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  GuildWatch - Statbot API Client
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Thin proxy to the Statbot statistics API.

Maps a (group, sub) command pair onto a Statbot endpoint, shapes the query
parameters from command options and returns the JSON body. Failures come
back as a :class:`StatbotResult` with a user-facing error, never as an
exception, so command handlers can reply with the message directly.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import requests

logger = logging.getLogger(__name__)


ENDPOINTS: Dict[str, Dict[str, str]] = {
    "messages": {
        "series": "/messages",
        "tops-members": "/messages/tops/members",
        "tops-channels": "/messages/tops/channels",
        "sums": "/messages/sums",
    },
    "voice": {
        "series": "/voice",
        "tops-members": "/voice/tops/members",
        "tops-channels": "/voice/tops/channels",
        "sums": "/voice/sums",
    },
    "activities": {
        "series": "/activities",
        "tops": "/activities/tops/activities",
    },
    "members": {
        "counts": "/counts/members",
        "counts-series": "/counts/members/series",
    },
    "channels": {
        "counts-series": "/counts/channels/series",
    },
    "statuses": {
        "series": "/statuses/series",
    },
}

# Options forwarded to Statbot, in the order they are appended
QUERY_OPTIONS: Tuple[str, ...] = (
    "start",
    "end",
    "timezone_offset",
    "interval",
    "limit",
    "order",
    "bot",
    "stats",
    "whitelist_members",
    "blacklist_members",
    "whitelist_roles",
    "blacklist_roles",
    "whitelist_channels",
    "blacklist_channels",
    "whitelist_voice_channels",
    "blacklist_voice_channels",
    "by_channel",
    "by_member",
    "by_flag",
    "voice_states",
    "by_state",
    "whitelist_activities",
    "blacklist_activities",
    "by_activity",
    "page_size",
    "page",
    "select",
    "full",
)

# Guild-relative paths exercised by the full endpoint check
FULL_CHECK_PATHS: Tuple[str, ...] = (
    "messages/series",
    "messages/series?by_member=true&by_channel=true&by_flag=true",
    "messages/series?interval=hour&order=asc",
    "voice/series",
    "voice/series?by_member=true&by_channel=true&by_state=true",
    "voice/series?voice_states[]=self_mute",
    "activities/series",
    "activities/series?by_member=true&by_activity=true",
    "membercounts/series",
    "membercounts/series?interval=week&order=desc",
    "statuses/series",
    "statuses/series?interval=month&order=asc",
    "counts/members/series?stats[]=text&stats[]=voice",
    "counts/channels/series?stats[]=text&stats[]=voice",
    "messages/sums",
    "voice/sums",
    "voice/sums?voice_states[]=afk",
    "counts/members",
    "channels",
    "activities/tops/activities",
    "activities/tops/activities?page=1&page_size=50",
    "messages/tops/members",
    "messages/tops/members?full=true",
    "messages/tops/channels",
    "voice/tops/members",
    "voice/tops/members?voice_states[]=server_mute",
    "voice/tops/channels",
)

OptionGetter = Callable[[str], Any]


def is_list_option(name: str) -> bool:
    """Options whose comma-separated value is sent as repeated parameters."""
    if name in ("voice_states", "select", "stats"):
        return True
    return name.endswith("s") and name.startswith(("whitelist_", "blacklist_"))


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def build_query_params(get_option: Union[OptionGetter, Mapping[str, Any]]) -> List[Tuple[str, str]]:
    """
    Shape command options into Statbot query parameters.

    Args:
        get_option: Mapping of option values, or a callable returning the value
            (or an object with a ``value`` attribute) for an option name

    Returns:
        Ordered list of (name, value) pairs; list options repeat their name
    """
    if isinstance(get_option, Mapping):
        options = get_option
        get_option = options.get

    params: List[Tuple[str, str]] = []
    for name in QUERY_OPTIONS:
        raw = get_option(name)
        value = getattr(raw, "value", raw)
        if value is None:
            continue

        if is_list_option(name) and not isinstance(value, bool):
            for part in str(value).split(","):
                part = part.strip()
                if part:
                    params.append((name, part))
        else:
            params.append((name, _format_value(value)))
    return params


def parse_key_value_args(args: List[str]) -> Dict[str, str]:
    """Parse ``key=value`` tokens from a text command; malformed tokens are ignored."""
    options: Dict[str, str] = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if not key or not sep or not value:
            continue
        options[key] = value
    return options


@dataclass
class StatbotResult:
    """Outcome of a Statbot request."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    url: str = ""

    def to_json_bytes(self) -> bytes:
        return json.dumps(self.data, indent=2).encode("utf-8")


@dataclass
class FullCheckReport:
    """Summary of a full endpoint check."""

    succeeded: int = 0
    failed_urls: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.succeeded + len(self.failed_urls)

    def summary(self) -> str:
        failed = ", ".join(self.failed_urls) if self.failed_urls else "None"
        return f"Finished running {self.succeeded} requests. Failed requests: {failed}"


class StatbotClient:
    """Blocking Statbot API client; run it off the event loop."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.statbot.net",
        timeout: float = 10.0,
        full_check_pause: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.full_check_pause = full_check_pause
        self._sleep = sleep
        self._session: Optional[requests.Session] = None

    def _get_session(self) -> requests.Session:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(
                {
                    "Authorization": f"Bearer {self.api_key}",
                    "Accept": "application/json",
                }
            )
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def guild_url(self, guild_id: str) -> str:
        return f"{self.base_url}/v1/guilds/{guild_id}"

    def resolve_endpoint(self, group: str, sub: str, guild_id: str) -> Optional[str]:
        path = ENDPOINTS.get(group, {}).get(sub)
        if path is None:
            return None
        return self.guild_url(guild_id) + path

    @staticmethod
    def _rate_limit_error(response: requests.Response) -> Optional[str]:
        def _header_int(name: str) -> Optional[int]:
            try:
                return int(response.headers.get(name, ""))
            except ValueError:
                return None

        remaining = _header_int("x-ratelimit-remaining")
        if response.status_code != 429 and remaining != 0:
            return None
        wait = _header_int("retry-after") or _header_int("x-ratelimit-reset") or "a few"
        return f"Rate limited. Please wait {wait} seconds before retrying."

    def _get(self, url: str, params: Optional[List[Tuple[str, str]]] = None) -> StatbotResult:
        try:
            response = self._get_session().get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Statbot request to %s failed: %s", url, e)
            return StatbotResult(False, error=f"Error unknown: {e}", url=url)

        limited = self._rate_limit_error(response)
        if limited:
            logger.info("Statbot rate limit hit for %s", url)
            return StatbotResult(False, error=limited, url=response.url or url)

        if not response.ok:
            message = response.reason or "Request failed"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("message"):
                    message = body["message"]
            except ValueError:
                pass
            return StatbotResult(False, error=f"Error {response.status_code}: {message}", url=response.url or url)

        try:
            data = response.json()
        except ValueError as e:
            return StatbotResult(False, error=f"Unexpected error: invalid JSON ({e})", url=response.url or url)

        return StatbotResult(True, data=data, url=response.url or url)

    def query(
        self,
        group: str,
        sub: str,
        guild_id: str,
        options: Union[OptionGetter, Mapping[str, Any], None] = None,
    ) -> StatbotResult:
        """
        Run one Statbot query for a guild.

        Args:
            group: Command group (messages, voice, activities, members, channels, statuses)
            sub: Subcommand within the group
            guild_id: Discord guild ID
            options: Option values keyed by option name

        Returns:
            StatbotResult with the decoded JSON body or a user-facing error
        """
        url = self.resolve_endpoint(group, sub, guild_id)
        if url is None:
            return StatbotResult(False, error=f"Unknown endpoint for group: {group}, sub: {sub}")

        params = build_query_params(options if options is not None else {})
        logger.debug("Statbot query %s/%s for guild %s (%d params)", group, sub, guild_id, len(params))
        return self._get(url, params)

    def run_raw(self, url_or_path: str, guild_id: str) -> StatbotResult:
        """Request a full URL, or a path relative to the guild's base URL."""
        if url_or_path.startswith(("http://", "https://")):
            url = url_or_path
        else:
            url = f"{self.guild_url(guild_id)}/{url_or_path.lstrip('/')}"
        return self._get(url)

    def run_full_check(
        self,
        guild_id: str,
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> FullCheckReport:
        """Hit every sample endpoint once, pausing between calls."""
        report = FullCheckReport()
        total = len(FULL_CHECK_PATHS)
        for index, path in enumerate(FULL_CHECK_PATHS):
            if progress is not None:
                progress(index + 1, total)

            result = self.run_raw(path, guild_id)
            if result.success:
                report.succeeded += 1
            else:
                report.failed_urls.append(result.url or path)

            if index < total - 1 and self.full_check_pause > 0:
                self._sleep(self.full_check_pause)

        logger.info("Statbot full check: %d/%d succeeded", report.succeeded, total)
        return report
