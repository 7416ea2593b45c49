"""
Configuration module for skytap-ci
"""
import os
from typing import Optional

from dotenv import load_dotenv

import skytap_ci.clients.constants as constants
from skytap_ci.utils.utils import as_bool, get_env


# Load environment variables from .env file
load_dotenv()


def get_api_url() -> str:
    """
    Get the Skytap API base URL from environment or return default

    Returns:
        API base URL without a trailing slash
    """
    return get_env(constants.API_URL_ENV, constants.DEFAULT_API_URL).rstrip("/")


def get_workspace() -> str:
    """
    Get the CI workspace directory, falling back to the current directory

    Returns:
        Workspace path
    """
    return get_env(constants.WORKSPACE_ENV) or os.getcwd()


def is_logging_enabled(override: Optional[bool] = None) -> bool:
    """
    Whether the verbose logging channel is enabled

    Logging is enabled unless SKYTAP_LOGGING_ENABLED says otherwise.
    """
    if override is not None:
        return override
    return as_bool(get_env(constants.LOGGING_ENABLED_ENV), default=True)
