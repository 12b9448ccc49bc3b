"""Package-wide constants.

This module defines constants used throughout the package
to avoid magic numbers and ensure consistency.
"""

# Permission keys
WILDCARD = "*"
DOT_SEPARATOR = "."
COLON_SEPARATOR = ":"
SEPARATORS = (DOT_SEPARATOR, COLON_SEPARATOR)
DEFAULT_SEPARATOR = DOT_SEPARATOR

# Cache settings
DEFAULT_CACHE_TTL_SECONDS = 300  # 5 minutes
DEFAULT_CACHE_PREFIX = "permgraph:"
CACHE_SCAN_COUNT = 100
USER_SCOPE = "user"
ROLE_SCOPE = "role"
DEFAULT_MEMORY_CACHE_MAX_ENTRIES = 10_000
MEMORY_CACHE_SWEEP_SECONDS = 1.0

# String field lengths
MAX_PERMISSION_KEY_LENGTH = 255
MAX_ROLE_NAME_LENGTH = 100
MAX_USER_ID_LENGTH = 255
MAX_CATEGORY_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 255
