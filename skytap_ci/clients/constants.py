API_URL_ENV = "SKYTAP_API_URL"
USER_ID_ENV = "SKYTAP_USER_ID"
AUTH_KEY_ENV = "SKYTAP_AUTH_KEY"
# names exported by the CI credentials wrapper
WRAPPER_USER_ID_ENV = "userId"
WRAPPER_AUTH_KEY_ENV = "authKey"
WORKSPACE_ENV = "WORKSPACE"
LOGGING_ENABLED_ENV = "SKYTAP_LOGGING_ENABLED"

DEFAULT_API_URL = "https://cloud.skytap.com"
DEFAULT_TIMEOUT = 60.0  # seconds

# gateway-level retry
LOCKED_RETRY_ATTEMPTS = 5
LOCKED_RETRY_INTERVAL = 15  # seconds
TIMEOUT_RETRY_ATTEMPTS = 5

# runstate transitions (linear backoff)
STATE_CHANGE_RETRIES = 5
STATE_CHANGE_BASE_INTERVAL = 20  # seconds
FALLBACK_SETTLE_SECONDS = 60
CONTAINER_SETTLE_SECONDS = 10

# busy-resource polling (constant interval)
POLL_ATTEMPTS = 18
POLL_INTERVAL = 10  # seconds

BUSY_STATE = "busy"
NOT_BUSY_STATUS = "not_busy"
DEFAULT_PORTAL_NAME = "Default Publish Set"
