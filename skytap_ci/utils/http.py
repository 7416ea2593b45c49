"""HTTP session utilities for skytap-ci."""

from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


def create_session(
    authorization: Optional[str] = None,
    pool_connections: int = 10,
    pool_maxsize: int = 10,
    retry_total: int = 3,
    retry_backoff_factor: float = 0.5,
    retry_status_forcelist: tuple = (502, 503, 504),
) -> requests.Session:
    """Create a requests Session configured for the Skytap JSON API.

    Args:
        authorization: Value of the Authorization header (``Basic <token>``).
        pool_connections: Number of connection pools to cache (default: 10).
        pool_maxsize: Maximum connections per pool (default: 10).
        retry_total: Maximum number of retries on 502/503/504 responses (default: 3).
        retry_backoff_factor: Backoff factor for retries (default: 0.5).
        retry_status_forcelist: HTTP status codes to retry on (default: 502, 503, 504).

    Returns:
        A requests.Session with JSON headers, connection pooling and retry strategy.
    """
    session = requests.Session()

    # 423 Locked and 409 Conflict are handled by the gateway, not urllib3.
    # Timeouts and dropped connections are retried by the gateway only.
    retry_strategy = Retry(
        total=retry_total,
        connect=0,
        read=0,
        other=0,
        status=retry_total,
        backoff_factor=retry_backoff_factor,
        status_forcelist=retry_status_forcelist,
        raise_on_status=False,
    )

    adapter = HTTPAdapter(
        pool_connections=pool_connections,
        pool_maxsize=pool_maxsize,
        max_retries=retry_strategy,
    )

    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "Accept": "application/json",
        "Content-Type": "application/json",
    })
    if authorization:
        session.headers["Authorization"] = authorization

    return session
