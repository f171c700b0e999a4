"""HTTP client used to pull sitemaps and listing pages from source sites."""

import logging
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import ConnectTimeoutError, ReadTimeoutError
from urllib3.util.retry import Retry

from soakmap.core.config import DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30
MAX_RETRIES = 2


class FetchError(RuntimeError):
    """Base class for failures retrieving a remote document."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(message)
        self.url = url


class FetchTimeoutError(FetchError):
    """Raised when the remote site does not answer within the timeout."""


class HttpStatusError(FetchError):
    """Raised when the remote site answers with a non-2xx status."""

    def __init__(self, url: str, status: int) -> None:
        super().__init__(url, f"Failed to fetch {url}: HTTP {status}")
        self.status = status


class NetworkError(FetchError):
    """Raised on connection-level failures (DNS, refused, reset, TLS)."""


def _retrying_session() -> requests.Session:
    # Only 5xx answers are retried; after the last attempt the response is
    # returned as is so Fetcher.fetch reports the status. Timeouts are never
    # retried so one request stays within the configured timeout.
    session = requests.Session()
    retries = Retry(
        total=MAX_RETRIES,
        connect=0,
        read=False,
        backoff_factor=1,
        status_forcelist=(500, 502, 503, 504),
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    return session


def _is_timeout(exc: requests.RequestException) -> bool:
    """True when a transport error was caused by a timeout wrapped by urllib3 retries."""
    reason = getattr(exc.args[0], "reason", None) if exc.args else None
    return isinstance(reason, (ReadTimeoutError, ConnectTimeoutError))


class Fetcher:
    """Fetch documents over HTTP with a bounded timeout and an identifying User-Agent.

    The User-Agent names the crawler so site operators can recognise it and block
    it if they choose to.
    """

    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.session = session or _retrying_session()
        self.session.headers["User-Agent"] = user_agent
        self.session.headers.setdefault("Accept", "text/html,application/xhtml+xml,application/xml")
        self.session.headers.setdefault("Accept-Language", "en-US,en;q=0.9")

    def fetch(self, url: str) -> str:
        try:
            response = self.session.get(url, timeout=self.timeout, allow_redirects=True)
        except requests.Timeout as exc:
            raise FetchTimeoutError(url, f"Request timed out for {url}") from exc
        except requests.RequestException as exc:
            if _is_timeout(exc):
                raise FetchTimeoutError(url, f"Request timed out for {url}") from exc
            raise NetworkError(url, f"Failed to fetch {url}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise HttpStatusError(url, response.status_code)

        logger.debug("Fetched %s (%d bytes)", url, len(response.text))
        return response.text

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
