"""Shared constants for mcworkshop."""

GROUP = "multi-cloud-workshop"
PUBLIC_KEY_FILENAME = f"{GROUP}.pub"
PRIVATE_KEY_FILENAME = f"{GROUP}.key"

DEFAULT_CONFIG_FILENAME = ".mcworkshop.yml"
DEFAULT_LOGIN_USER = "root"
DEFAULT_DATABASE_ROOT_PASSWORD = "admin123"

# Seconds.
DEFAULT_POLL_INTERVAL = 30.0
DEFAULT_SCRIPT_TIMEOUT = 1200.0
DEFAULT_CREATE_TIMEOUT = 1800.0
SSH_CONNECT_TIMEOUT = 30.0
