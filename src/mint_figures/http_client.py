from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Mapping

import requests
from requests import exceptions as req_exc
from requests.structures import CaseInsensitiveDict

logger = logging.getLogger(__name__)

TRANSIENT_HTTP_STATUSES = {429, 500, 502, 503, 504}

USER_AGENT = "mint-figures/0.1 (+https://github.com/mint-figures/mint-figures)"

# Upper bound for a single wait, whatever Retry-After asks for.
MAX_BACKOFF_S = 60.0


def _retry_after_seconds(headers: Mapping[str, str]) -> float | None:
    value = headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


@dataclass(frozen=True)
class FetchResult:
    url: str
    final_url: str
    status_code: int
    headers: dict[str, str]
    fetched_at: float
    body: bytes
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    @property
    def content_type(self) -> str | None:
        return CaseInsensitiveDict(self.headers).get("Content-Type")


class HttpClient:
    """GET with bounded retries on connection errors and transient statuses."""

    def __init__(
        self,
        session: requests.Session,
        *,
        timeout_s: int = 45,
        max_retries: int = 4,
        backoff_base_s: float = 1.0,
    ) -> None:
        self._session = session
        self._timeout_s = timeout_s
        self._max_retries = max_retries
        self._backoff_base_s = backoff_base_s
        if "User-Agent" not in self._session.headers:
            self._session.headers["User-Agent"] = USER_AGENT

    def _backoff_s(self, attempt: int, retry_after: float | None = None) -> float:
        if retry_after is not None:
            return min(retry_after, MAX_BACKOFF_S)
        return min(self._backoff_base_s * (2**attempt), MAX_BACKOFF_S)

    def get(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> FetchResult:
        """Fetch ``url`` with ``params`` merged into its query.

        Non-2xx responses are returned as results; only exhausting the
        retries on connection errors raises (RuntimeError).
        """

        target = requests.Request("GET", url, params=params).prepare().url
        attempts = self._max_retries + 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            final = attempt == attempts - 1
            try:
                resp = self._session.get(
                    url, params=params, timeout=self._timeout_s, headers=headers
                )
            except req_exc.RequestException as e:
                last_error = e
                if final:
                    break
                wait_s = self._backoff_s(attempt)
                logger.debug("%s for %s, retrying in %.1fs", type(e).__name__, target, wait_s)
                time.sleep(wait_s)
                continue

            if resp.status_code in TRANSIENT_HTTP_STATUSES and not final:
                wait_s = self._backoff_s(attempt, _retry_after_seconds(resp.headers))
                logger.debug("HTTP %s for %s, retrying in %.1fs", resp.status_code, target, wait_s)
                time.sleep(wait_s)
                continue

            return FetchResult(
                url=target,
                final_url=str(resp.url),
                status_code=int(resp.status_code),
                headers={k: str(v) for k, v in resp.headers.items()},
                fetched_at=time.time(),
                body=resp.content,
                attempts=attempt + 1,
            )

        raise RuntimeError(f"Failed to fetch {target} after {attempts} attempt(s): {last_error}")

    def prime_cookies(self, token_url: str) -> None:
        """Hit the CSRF token endpoint so the session carries its cookies.

        Failure is not fatal; data endpoints are still attempted without them.
        """

        try:
            res = self.get(token_url)
        except RuntimeError as e:
            logger.warning("Could not obtain session cookies: %s", e)
            return
        if not res.ok:
            logger.warning(
                "Token endpoint returned HTTP %s; continuing without cookies",
                res.status_code,
            )
