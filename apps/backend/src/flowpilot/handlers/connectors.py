"""Live action handlers that perform real HTTP side effects via httpx."""

from __future__ import annotations

from typing import Any

import httpx

from ..errors import HandlerExecutionError

_SLACK_API = "https://slack.com/api"
_BODY_METHODS = {"POST", "PUT", "PATCH"}


class HttpRequestHandler:
    """Performs the request described by an ``http_request`` node.

    Config keys: url (required), method, headers, params, body. For methods
    that carry a body and no explicit ``body``, the node input is sent as JSON.
    """

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self.http = http_client

    async def __call__(self, config: dict, payload: Any) -> dict:
        url = config.get("url")
        if not url:
            raise HandlerExecutionError("http_request requires a 'url'", "invalid_config")

        method = str(config.get("method") or "GET").upper()
        body = config.get("body")
        if body is None and method in _BODY_METHODS:
            body = payload

        try:
            resp = await self.http.request(
                method,
                url,
                headers=config.get("headers"),
                params=config.get("params"),
                json=body,
            )
        except httpx.HTTPError as e:
            raise HandlerExecutionError(f"{method} {url} failed: {e}", "connection_error") from e

        if resp.status_code >= 400:
            raise HandlerExecutionError(f"{method} {url} returned HTTP {resp.status_code}", "http_error")

        if resp.headers.get("content-type", "").startswith("application/json"):
            data: Any = resp.json()
        else:
            data = resp.text
        return {"status": resp.status_code, "data": data, "method": method}


class SlackMessageHandler:
    """Posts a ``slack_message`` node through the Slack Web API.

    Scopes needed: chat:write
    """

    def __init__(self, bot_token: str, http_client: httpx.AsyncClient) -> None:
        self.http = http_client
        self._headers = {
            "Authorization": f"Bearer {bot_token}",
            "Content-Type": "application/json",
        }

    async def __call__(self, config: dict, payload: Any) -> dict:
        channel = config.get("channel") or "#general"
        message = config.get("message") or "Hello from workflow!"

        try:
            resp = await self.http.post(
                f"{_SLACK_API}/chat.postMessage",
                headers=self._headers,
                json={"channel": channel, "text": message},
            )
        except httpx.HTTPError as e:
            raise HandlerExecutionError(f"Slack request failed: {e}", "connection_error") from e

        data = resp.json()
        if not data.get("ok"):
            self._map_error(data.get("error", "unknown"))

        return {"posted": True, "channel": channel, "message": message, "ts": data.get("ts")}

    def _map_error(self, error_code: str) -> None:
        mapping: dict[str, tuple[str, str]] = {
            "ratelimited": ("Slack rate limit hit", "rate_limit"),
            "not_in_channel": ("Bot is not in the channel", "permission_denied"),
            "channel_not_found": ("Channel not found", "not_found"),
            "missing_scope": ("Bot missing required Slack scope", "permission_denied"),
            "invalid_auth": ("Slack bot token rejected", "permission_denied"),
        }
        msg, etype = mapping.get(error_code, (f"Slack API error: {error_code}", "connector_error"))
        raise HandlerExecutionError(msg, etype)
