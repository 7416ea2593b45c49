import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import requests

import skytap_ci.clients.constants as constants
from skytap_ci.clients.credentials import Credentials
from skytap_ci.exceptions import ConflictError, GatewayError, ResourceLockedError
from skytap_ci.utils.http import create_session
from skytap_ci.utils.log import StepLogger
from skytap_ci.utils.utils import get_env, pause


@dataclass
class ApiResponse:
    """Status and raw body of one Skytap API call"""
    status_code: int
    reason: str
    body: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def status_line(self) -> str:
        return f"HTTP {self.status_code} {self.reason}".strip()


class HttpGateway:
    """Authenticated access to the Skytap REST API.

    Every request carries Basic auth and JSON headers. Two transient
    conditions are retried here before a caller ever sees a result:
    ``423 Locked`` (the resource is busy with another operation) and
    request timeouts / dropped connections. ``409 Conflict`` is raised
    immediately as ConflictError.
    """

    def __init__(
        self,
        credentials: Credentials,
        logger: StepLogger,
        api_url: Optional[str] = None,
        timeout: float = constants.DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        locked_retry_attempts: int = constants.LOCKED_RETRY_ATTEMPTS,
        locked_retry_interval: float = constants.LOCKED_RETRY_INTERVAL,
        timeout_retry_attempts: int = constants.TIMEOUT_RETRY_ATTEMPTS,
    ):
        """Initialize the gateway

        Args:
            credentials: Skytap user id and auth key.
            logger: Logging capability of the current pipeline execution.
            api_url: API base URL (defaults to SKYTAP_API_URL or https://cloud.skytap.com).
            timeout: Connect and read timeout per request in seconds (default: 60).
            session: Pre-built session, mainly for tests.
            sleep: Blocking sleep used between 423 retries.
        """
        self.api_url = (api_url or get_env(constants.API_URL_ENV, constants.DEFAULT_API_URL)).rstrip("/")
        self.timeout = timeout
        self.logger = logger
        self.session = session or create_session(authorization=credentials.authorization)
        self._sleep = sleep
        self.locked_retry_attempts = locked_retry_attempts
        self.locked_retry_interval = locked_retry_interval
        self.timeout_retry_attempts = timeout_retry_attempts

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return None

    def url(self, path: str) -> str:
        return f"{self.api_url}/{path.lstrip('/')}"

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return self.request("GET", path, params=params)

    def post(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Any] = None,
    ) -> ApiResponse:
        return self.request("POST", path, params=params, body=body)

    def put(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Any] = None,
    ) -> ApiResponse:
        return self.request("PUT", path, params=params, body=body)

    def delete(self, path: str) -> ApiResponse:
        return self.request("DELETE", path)

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Any] = None,
    ) -> ApiResponse:
        """Execute a request, retrying locked resources and timeouts

        Returns:
            ApiResponse for any status other than 409 and exhausted 423

        Raises:
            ResourceLockedError: If the resource stayed locked for every attempt
            ConflictError: On 409 Conflict
            GatewayError: If the request could not be completed
        """
        url = self.url(path)
        locked_attempt = 1
        timeout_attempt = 1

        while True:
            stamp = datetime.now().strftime("%Y-%m-%d:%H-%M-%S")
            self.logger.log(f"{stamp} Executing Request: {method} {url} params={params or {}}")
            try:
                response = self.session.request(
                    method,
                    url,
                    params=params,
                    json=body,
                    timeout=(self.timeout, self.timeout),
                )
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                if timeout_attempt >= self.timeout_retry_attempts:
                    self.logger.error(f"API Timeout - giving up. {e}")
                    raise GatewayError(
                        f"{method} {url} failed after {timeout_attempt} attempts: {e}",
                        {"url": url}
                    ) from e
                timeout_attempt += 1
                self.logger.log(f"{stamp} {e} API Timeout - Retrying...")
                continue
            except requests.exceptions.RequestException as e:
                self.logger.error(f"Request failed: {e}")
                raise GatewayError(f"{method} {url} failed: {e}", {"url": url}) from e

            result = ApiResponse(
                status_code=response.status_code,
                reason=response.reason or "",
                body=response.text or "",
            )

            if result.status_code == 423:
                if locked_attempt >= self.locked_retry_attempts:
                    self.logger.error("Object busy too long - giving up.")
                    raise ResourceLockedError(
                        f"{method} {url} stayed locked after {locked_attempt} attempts",
                        {"url": url}
                    )
                locked_attempt += 1
                self.logger.log("Object busy - Retrying...")
                pause(self.locked_retry_interval, self.logger, self._sleep)
                continue

            if result.status_code == 409:
                raise ConflictError(
                    f"{result.status_line}: {result.body}",
                    {"url": url, "body": result.body}
                )

            self.logger.log(result.status_line)
            return result

    def close(self):
        """Close the underlying session and release connection pool resources."""
        self.session.close()
