"""
Subscan API client for Substrate reward and transfer data.

All requests go through a shared RateLimiter, so every collector built on
one client instance respects the same spacing and concurrency limits.

API Documentation: https://support.subscan.io/
"""

import time
from dataclasses import dataclass, field, replace
from typing import Dict, Any, Optional, List, Iterator, Tuple, Callable
import requests
import structlog

from inflation_tracker.core.errors import SubscanAPIError, SubscanTransportError
from inflation_tracker.core.rate_limiter import RateLimiter

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PageQuery:
    """One logical paginated query against a Subscan list endpoint."""
    page_size: int = 100
    page: int = 0
    address: Optional[str] = None
    window_start: Optional[int] = None
    window_end: Optional[int] = None
    order_field: Optional[str] = None
    order: Optional[str] = None
    direction: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def for_page(self, page: int) -> "PageQuery":
        return replace(self, page=page)

    def to_payload(self) -> Dict[str, Any]:
        """Translate to the Subscan request body."""
        payload: Dict[str, Any] = {"row": self.page_size, "page": self.page}
        if self.address is not None:
            payload["address"] = self.address
        if self.window_start is not None:
            payload["from_block_timestamp"] = self.window_start
        if self.window_end is not None:
            payload["to_block_timestamp"] = self.window_end
        if self.order_field is not None:
            payload["order_field"] = self.order_field
        if self.order is not None:
            payload["order"] = self.order
        if self.direction is not None:
            payload["direction"] = self.direction
        payload.update(self.extra)
        return payload


class SubscanClient:
    """
    Rate-limited, paginating Subscan client.

    Features:
    - Shared dispatch spacing and concurrency cap
    - Retry with exponential backoff on transient failures
    - Non-zero API codes are hard page failures (not retried)
    """

    BASE_URL = "https://polkadot.api.subscan.io"

    def __init__(self,
                 base_url: Optional[str] = None,
                 api_key: Optional[str] = None,
                 limiter: Optional[RateLimiter] = None,
                 timeout: float = 30.0,
                 max_retries: int = 3,
                 retry_backoff: float = 1.0,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize Subscan API client.

        Args:
            base_url: API root, defaults to the Polkadot endpoint
            api_key: Optional API key sent as X-API-Key
            limiter: Shared rate limiter (a default one is created if omitted)
            timeout: Per-request timeout in seconds
            max_retries: Attempts per page before giving up
            retry_backoff: Base delay for exponential backoff
            session: Optional requests session (injected in tests)
            sleep: Sleep function used between retries
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.api_key = api_key
        self.limiter = limiter or RateLimiter()
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_backoff = retry_backoff
        self._sleep = sleep

        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'RewardFlowTracker/1.0.0',
        })
        if api_key:
            self.session.headers['X-API-Key'] = api_key

        logger.info("Subscan client initialized",
                    base_url=self.base_url,
                    has_api_key=bool(api_key),
                    timeout=timeout)

    def _backoff(self, attempt: int, retry_after: Optional[float] = None) -> None:
        if attempt >= self.max_retries - 1:
            return
        delay = retry_after if retry_after is not None else self.retry_backoff * (2 ** attempt)
        if delay > 0:
            self._sleep(delay)

    def request(self, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        POST a query and return the `data` section of the response.

        Raises:
            SubscanAPIError: response carried a non-zero code
            SubscanTransportError: transport or HTTP failure after all retries
        """
        url = f"{self.base_url}{endpoint}"
        payload = payload or {}
        last_error = "no attempt made"

        for attempt in range(self.max_retries):
            try:
                with self.limiter.slot():
                    response = self.session.post(url, json=payload, timeout=self.timeout)
            except requests.RequestException as e:
                last_error = str(e)
                logger.warning("Subscan request failed",
                               endpoint=endpoint,
                               attempt=attempt + 1,
                               error=last_error)
                self._backoff(attempt)
                continue

            status = response.status_code
            if status == 429 or status >= 500:
                last_error = f"HTTP {status}"
                retry_after = None
                if status == 429:
                    try:
                        retry_after = min(float(response.headers.get('Retry-After', '')), 60.0)
                    except ValueError:
                        retry_after = None
                logger.warning("Subscan transient HTTP error",
                               endpoint=endpoint,
                               status=status,
                               attempt=attempt + 1)
                self._backoff(attempt, retry_after)
                continue

            if status >= 400:
                raise SubscanTransportError(f"HTTP {status} from {endpoint}")

            try:
                body = response.json()
            except ValueError as e:
                raise SubscanTransportError(f"Invalid JSON from {endpoint}: {e}") from e

            if not isinstance(body, dict):
                raise SubscanTransportError(f"Unexpected response body from {endpoint}")

            code = body.get('code', -1)
            if code != 0:
                raise SubscanAPIError(endpoint, code, body.get('message', ''))

            data = body.get('data') or {}
            if not isinstance(data, dict):
                raise SubscanTransportError(f"Unexpected data section from {endpoint}")
            return data

        raise SubscanTransportError(
            f"Request to {endpoint} failed after {self.max_retries} attempts: {last_error}"
        )

    def iter_pages(self, endpoint: str, query: PageQuery,
                   list_key: str = "list") -> Iterator[Tuple[int, List[Dict[str, Any]]]]:
        """
        Yield (page_index, records) for consecutive pages starting at query.page.

        Iteration ends after an empty page or a short page. A failing page
        raises; the caller decides whether that aborts the query.
        """
        page = query.page
        while True:
            data = self.request(endpoint, query.for_page(page).to_payload())
            records = data.get(list_key) or []
            if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
                raise SubscanTransportError(f"Malformed {list_key} on page {page} of {endpoint}")
            if not records:
                return
            yield page, records
            if len(records) < query.page_size:
                return
            page += 1

    def paginate(self, endpoint: str, query: PageQuery,
                 list_key: str = "list", limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Collect records across pages until exhaustion or `limit` is reached.

        Records from the page that crosses `limit` are all kept; callers that
        need an exact count slice the result.
        """
        records: List[Dict[str, Any]] = []
        for page, page_records in self.iter_pages(endpoint, query, list_key):
            records.extend(page_records)
            logger.debug("Fetched page",
                         endpoint=endpoint,
                         page=page,
                         rows=len(page_records),
                         total=len(records))
            if limit is not None and len(records) >= limit:
                break
        return records

    def close(self):
        """Close the underlying HTTP session."""
        self.session.close()
