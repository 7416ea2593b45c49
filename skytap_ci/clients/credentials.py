import base64
from dataclasses import dataclass

import skytap_ci.clients.constants as constants
from skytap_ci.exceptions import ConfigurationError
from skytap_ci.utils.utils import get_first_env


@dataclass(frozen=True)
class Credentials:
    """Skytap user id and API auth key for the current pipeline execution"""
    user_id: str
    auth_key: str

    def __repr__(self) -> str:
        return f"Credentials(user_id={self.user_id!r}, auth_key='***')"

    @property
    def token(self) -> str:
        """Base64 encoded ``user_id:auth_key`` for the Basic auth header"""
        raw = f"{self.user_id}:{self.auth_key}".encode("utf-8")
        return base64.b64encode(raw).decode("ascii")

    @property
    def authorization(self) -> str:
        return f"Basic {self.token}"

    @classmethod
    def from_env(cls) -> "Credentials":
        """Resolve credentials from the step environment

        Raises:
            ConfigurationError: If either value is missing
        """
        user_id = get_first_env(constants.USER_ID_ENV, constants.WRAPPER_USER_ID_ENV)
        auth_key = get_first_env(constants.AUTH_KEY_ENV, constants.WRAPPER_AUTH_KEY_ENV)
        if not user_id or not auth_key:
            raise ConfigurationError(
                f"Skytap credentials must be provided via {constants.USER_ID_ENV} "
                f"and {constants.AUTH_KEY_ENV} environment variables."
            )
        return cls(user_id=user_id, auth_key=auth_key)
