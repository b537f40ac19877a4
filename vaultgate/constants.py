"""Fixed values shared across vaultgate."""

PRODUCTION_BASE_URL = "https://api.fireblocks.io"
SANDBOX_BASE_URL = "https://sandbox-api.fireblocks.io"

ASSERTION_TTL_SECONDS = 55
NONCE_BYTES = 16
SIGNING_ALGORITHM = "RS256"

HEADER_AUTHORIZATION = "Authorization"
HEADER_API_KEY = "X-API-Key"
HEADER_CONTENT_TYPE = "Content-Type"
JSON_CONTENT_TYPE = "application/json"

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_VAULT_PAGE_SIZE = 20
DEFAULT_TRANSACTION_LIMIT = 10

DEFAULT_ONBOARDING_ASSETS = ("BTC", "ETH")
REF_ID_LOOKUP_PAGE_SIZE = 500
