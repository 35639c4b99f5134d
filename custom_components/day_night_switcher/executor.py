"""
Action Executor
Builds and sends the HTTP request for a phase with auth, timeout and retries.
"""
from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import aiohttp

from .const import (
    ACTION_TIMEOUT,
    BODY_METHODS,
    LOG_CHUNK_SIZE,
    MAX_LOG_BYTES,
    RETRY_JITTER_MS,
)
from .config_resolver import normalize_method
from .exceptions import (
    ActionError,
    ActionHTTPStatusError,
    ActionNotConfiguredError,
    ActionRequestError,
)
from .models import ActionSettings, AuthSettings, AuthType, EffectiveConfig, Phase

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")

_TEXT_PREFIXES = (
    "text/",
    "application/json",
    "application/xml",
    "application/x-www-form-urlencoded",
)


@dataclass
class PreparedAction:
    """A fully built request, reused unchanged for every attempt."""

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


def allows_body(method: str) -> bool:
    return method.upper() in BODY_METHODS


def merge_extra_headers(target: Dict[str, str], raw: Optional[str]) -> None:
    """Merge a JSON object of extra headers into ``target``.

    Scalars are stringified and nested values re-serialized as JSON. Bad
    JSON, or JSON that is not an object, is logged and ignored.
    """
    if not raw:
        return
    try:
        extra = json.loads(raw)
    except ValueError:
        _LOGGER.warning("Extra headers are not valid JSON; ignoring")
        return

    if not isinstance(extra, dict):
        _LOGGER.warning("Extra headers JSON must be an object; ignoring")
        return

    for key, value in extra.items():
        name = str(key).strip()
        if not name or value is None:
            continue
        if isinstance(value, str):
            target[name] = value
        elif isinstance(value, bool):
            target[name] = "true" if value else "false"
        elif isinstance(value, (int, float)):
            target[name] = str(value)
        else:
            target[name] = json.dumps(value, separators=(",", ":"))


def build_request(action: ActionSettings) -> PreparedAction:
    """Assemble method, headers and body for an action."""
    method = normalize_method(action.method)
    body_allowed = allows_body(method)

    headers: Dict[str, str] = {}
    if action.content_type and body_allowed:
        headers["Content-Type"] = action.content_type
    merge_extra_headers(headers, action.headers)

    return PreparedAction(
        method=method,
        url=action.url,
        headers=headers,
        body=action.body if body_allowed and action.body else None,
    )


class AuthStrategy:
    """Adds authentication to a request. The base class adds nothing."""

    name = AuthType.NONE.value

    def request_kwargs(self, headers: Dict[str, str]) -> Dict[str, Any]:
        """Return keyword arguments for ``ClientSession.request``."""
        return {"headers": dict(headers)}


class NoAuth(AuthStrategy):
    pass


class BasicAuthStrategy(AuthStrategy):
    """Basic Authorization header, only when both credentials are set."""

    name = AuthType.BASIC.value

    def __init__(self, username: Optional[str], password: Optional[str]):
        self._username = username
        self._password = password

    def request_kwargs(self, headers: Dict[str, str]) -> Dict[str, Any]:
        merged = dict(headers)
        if self._username and self._password:
            merged["Authorization"] = aiohttp.BasicAuth(
                self._username, self._password
            ).encode()
        return {"headers": merged}


class DigestAuthStrategy(AuthStrategy):
    """Delegates the challenge/response handshake to aiohttp's middleware."""

    name = AuthType.DIGEST.value

    def __init__(self, username: Optional[str], password: Optional[str]):
        self._middleware = aiohttp.DigestAuthMiddleware(
            login=username or "", password=password or ""
        )

    def request_kwargs(self, headers: Dict[str, str]) -> Dict[str, Any]:
        return {"headers": dict(headers), "middlewares": (self._middleware,)}


def auth_strategy_for(auth: AuthSettings) -> AuthStrategy:
    if auth.auth_type is AuthType.DIGEST:
        return DigestAuthStrategy(auth.username, auth.password)
    if auth.auth_type is AuthType.BASIC:
        return BasicAuthStrategy(auth.username, auth.password)
    return NoAuth()


def retry_delay_ms(base_delay_ms: float, attempt_index: int) -> float:
    """Exponential back-off with up to 250 ms of jitter."""
    return base_delay_ms * (2 ** attempt_index) + random.uniform(0, RETRY_JITTER_MS)


async def async_call_with_retries(
    func: Callable[[], Awaitable[_T]],
    attempts: int = 1,
    base_delay_ms: float = 0,
    label: str = "request",
) -> _T:
    """
    Await ``func`` until it succeeds or the attempts run out.

    Args:
        func: Zero-argument coroutine factory, called once per attempt
        attempts: Total tries including the first one (minimum 1)
        base_delay_ms: Base delay for exponential back-off

    Returns:
        The first successful result

    Raises:
        ActionError: The failure of the last attempt
    """
    tries = max(1, int(attempts or 1))
    base = max(0.0, float(base_delay_ms or 0))

    for attempt in range(tries):
        try:
            return await func()
        except ActionError as err:
            if attempt >= tries - 1:
                raise
            delay = retry_delay_ms(base, attempt)
            _LOGGER.info(
                "%s failed (%s); retry %d/%d in %d ms",
                label,
                err,
                attempt + 1,
                tries - 1,
                delay,
            )
            await asyncio.sleep(delay / 1000)

    raise RuntimeError("unreachable")  # pragma: no cover


def is_textish(content_type: Optional[str]) -> bool:
    ct = (content_type or "").lower()
    return not ct or ct.startswith(_TEXT_PREFIXES)


def log_response(
    label: str,
    status_line: str,
    body: str,
    content_type: Optional[str],
    chunk: int = LOG_CHUNK_SIZE,
) -> None:
    """Log a response body in chunks, capped at 64 KB; binary types skipped."""
    ct_label = content_type or "(unknown)"
    if not is_textish(content_type):
        _LOGGER.info(
            "%s response: %s; content-type=%s; body not logged (non-text)",
            label,
            status_line,
            ct_label,
        )
        return

    total = len(body)
    cap = min(total, MAX_LOG_BYTES)
    _LOGGER.info(
        "%s response: %s; content-type=%s; body length=%d%s",
        label,
        status_line,
        ct_label,
        total,
        f" (logging first {cap} bytes)" if total > cap else "",
    )

    logged = 0
    for start in range(0, cap, chunk):
        end = min(start + chunk, cap)
        part = body[start:end]
        _LOGGER.info("%s body[%d-%d]: %s", label, start, end, part)
        logged += len(part)

    if cap < total:
        _LOGGER.info(
            "%s body truncated: logged %d/%d bytes (%d bytes not logged)",
            label,
            logged,
            total,
            total - logged,
        )


def status_line(status: int) -> str:
    try:
        phrase = HTTPStatus(status).phrase
    except ValueError:
        phrase = ""
    return f"HTTP {status} {phrase}".rstrip()


class ActionExecutor:
    """Sends day/night actions for one endpoint."""

    def __init__(self, session: aiohttp.ClientSession, name: str = "Day/Night"):
        """Initialize executor."""
        self._session = session
        self._name = name

    async def async_invoke(self, phase: Phase, config: EffectiveConfig) -> None:
        """
        Deliver the action for ``phase``.

        Raises:
            ActionNotConfiguredError: The phase has no URL (no request is made)
            ActionError: Every attempt failed
        """
        action = config.action(phase)
        if not action.url:
            raise ActionNotConfiguredError(f"{phase.value} URL not configured")

        request = build_request(action)
        try:
            auth = auth_strategy_for(config.auth)
        except ValueError as err:
            raise ActionRequestError(f"Invalid credentials: {err}") from err
        label = f"{self._name} {phase.value}"

        async def _attempt() -> None:
            await self._async_send(request, auth, label, config.log_responses)

        await async_call_with_retries(
            _attempt,
            attempts=config.retries,
            base_delay_ms=config.retry_base_delay_ms,
            label=label,
        )

    async def _async_send(
        self,
        request: PreparedAction,
        auth: AuthStrategy,
        label: str,
        log_responses: bool,
    ) -> None:
        try:
            kwargs = auth.request_kwargs(request.headers)
            if request.body is not None:
                kwargs["data"] = request.body

            async with asyncio.timeout(ACTION_TIMEOUT):
                async with self._session.request(
                    request.method, request.url, **kwargs
                ) as response:
                    status = response.status
                    content_type = response.headers.get("Content-Type")
                    try:
                        text = await response.text()
                    except (aiohttp.ClientError, UnicodeDecodeError):
                        text = ""
        except TimeoutError as err:
            raise ActionRequestError(
                f"{request.method} {request.url} timed out after {ACTION_TIMEOUT}s"
            ) from err
        except aiohttp.ClientError as err:
            raise ActionRequestError(
                f"{request.method} {request.url} failed: {err}"
            ) from err
        except ValueError as err:
            # malformed credentials or header values rejected by aiohttp
            raise ActionRequestError(
                f"{request.method} {request.url} rejected: {err}"
            ) from err

        line = status_line(status)
        if log_responses:
            log_response(label, line, text, content_type)

        if not 200 <= status < 300:
            raise ActionHTTPStatusError(status, line)
