# Copyright The Volcano Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Interpretation of Skytap API response bodies.

The API is not consistent about how it reports errors. Depending on the
endpoint the envelope is an ``errors`` array, an ``error`` string, an
``error`` boolean, or ``error: null``. Some endpoints also reuse the error
channel for informational answers ("Environment not attached to VPN"), which
are classified here into named signal kinds so callers never match text.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from skytap_ci.exceptions import ProviderError, ResponseParseError

GENERIC_ERROR_MESSAGE = "Skytap reported an error without a message"

NOT_ATTACHED_TO_VPN = "not attached to VPN"
NETWORKS_ALREADY_CONNECTED = "networks are already connected"
BUSY_MARKERS = ("busy", "locked", "in progress", "try again")


class SignalKind(Enum):
    """What an error envelope actually means for the caller"""
    HARD_ERROR = "hard_error"
    BUSY = "busy"
    NOT_YET_CONNECTED = "not_yet_connected"
    ALREADY_CONNECTED = "already_connected"


# first match wins
INFORMATIONAL_PATTERNS = (
    (NOT_ATTACHED_TO_VPN, SignalKind.NOT_YET_CONNECTED),
    (NETWORKS_ALREADY_CONNECTED, SignalKind.ALREADY_CONNECTED),
)


@dataclass(frozen=True)
class ErrorSignal:
    """Error parsed from one response body"""
    message: str
    kind: SignalKind = SignalKind.HARD_ERROR

    @property
    def is_hard_error(self) -> bool:
        return self.kind is SignalKind.HARD_ERROR

    @property
    def is_transient(self) -> bool:
        return self.kind is SignalKind.BUSY


def classify(message: str) -> SignalKind:
    """Decide the kind of an error message reported by the API"""
    for pattern, kind in INFORMATIONAL_PATTERNS:
        if pattern in message:
            return kind
    lowered = message.lower()
    if any(marker in lowered for marker in BUSY_MARKERS):
        return SignalKind.BUSY
    return SignalKind.HARD_ERROR


def as_text(value: Any) -> str:
    """Render a JSON scalar the way the API's own clients print it"""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value)


def decode(body: Any) -> Any:
    """Decode a response body

    Args:
        body: Raw text/bytes, or an already decoded JSON value

    Returns:
        The decoded value, or None for an empty body

    Raises:
        ResponseParseError: If the body is not valid JSON
    """
    if body is None:
        return None
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8")
    if not isinstance(body, str):
        return body
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError as e:
        raise ResponseParseError(
            f"Response is not valid JSON: {e}",
            {"body": body[:200]}
        ) from e


def check_for_error(body: Any) -> Optional[ErrorSignal]:
    """Extract the error envelope from a response body, if there is one

    Returns:
        None when the body carries no error, otherwise the ErrorSignal
    """
    data = decode(body)

    # list responses never carry an error envelope
    if not isinstance(data, dict):
        return None
    if "error" not in data and "errors" not in data:
        return None

    if "errors" in data:
        errors = data["errors"]
        items = errors if isinstance(errors, list) else [errors]
        message = "\n".join(as_text(item) for item in items if item is not None)
        if not message:
            message = GENERIC_ERROR_MESSAGE
        return ErrorSignal(message, classify(message))

    error = data["error"]
    if error is None or error is False:
        return None
    if error is True:
        return ErrorSignal(GENERIC_ERROR_MESSAGE)

    message = as_text(error)
    if message == "":
        return None
    return ErrorSignal(message, classify(message))


def raise_for_error(body: Any) -> Any:
    """Raise ProviderError if the body carries an error, else return it decoded"""
    data = decode(body)
    signal = check_for_error(data)
    if signal is not None:
        raise ProviderError(signal.message, signal=signal)
    return data


def get_field(body: Any, key: str) -> Any:
    """Return a top-level field from a JSON object body

    Raises:
        ResponseParseError: If the body is not an object or the field is absent
    """
    data = decode(body)
    if data is None:
        raise ResponseParseError("Response was null or empty.")
    if not isinstance(data, dict):
        raise ResponseParseError(f"Expected a JSON object while reading '{key}'")
    value = data.get(key)
    if value is None:
        raise ResponseParseError(f"Response is missing field '{key}'", {"keys": sorted(data)})
    return value


def get_text_field(body: Any, key: str) -> str:
    return as_text(get_field(body, key))


def read_connectivity(body: Any) -> bool:
    """Answer "is this connection already established?" from a check response

    An error saying the network is not attached yet means "not connected",
    an error saying the networks are already connected means "connected".
    Anything else in the error channel is a real failure.

    Raises:
        ProviderError: For hard errors
        ResponseParseError: If the body has no ``connected`` flag
    """
    signal = check_for_error(body)
    if signal is not None:
        if signal.kind is SignalKind.NOT_YET_CONNECTED:
            return False
        if signal.kind is SignalKind.ALREADY_CONNECTED:
            return True
        raise ProviderError(signal.message, signal=signal)
    return get_field(body, "connected") is True
