"""Google OAuth constants."""

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
SCOPES = (
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
)
CALLBACK_PATH = "/callback"

# Built-in OAuth clients; overridable through the environment (see config.loader).
DEFAULT_ANTIGRAVITY_CLIENT_ID = "ANTIGRAVITY_CLIENT_ID_PLACEHOLDER"
DEFAULT_ANTIGRAVITY_CLIENT_SECRET = "ANTIGRAVITY_CLIENT_SECRET_PLACEHOLDER"
DEFAULT_GEMINI_CLI_CLIENT_ID = "GEMINI_CLI_CLIENT_ID_PLACEHOLDER"
DEFAULT_GEMINI_CLI_CLIENT_SECRET = "GEMINI_CLI_CLIENT_SECRET_PLACEHOLDER"

TOKEN_CACHE_MARGIN_S = 300
DEFAULT_EXPIRES_IN_S = 3600
TOKEN_TIMEOUT_S = 10.0
CALLBACK_TIMEOUT_S = 120

STORE_FILENAME = "usage-google-accounts.json"
LEGACY_STORE_FILENAME = "usage-opencode-accounts.json"
MANUAL_PROMPT_DELAY_SEC = 3
SUCCESS_HTML = (
    "<!doctype html>"
    "<html lang=\"en\">"
    "<head>"
    "<meta charset=\"utf-8\" />"
    "<title>Login complete</title>"
    "</head>"
    "<body style=\"font-family: system-ui; text-align: center; padding: 50px;\">"
    "<h1>Login successful!</h1>"
    "<p>You can close this window and return to the terminal.</p>"
    "</body>"
    "</html>"
)
FAILURE_HTML = (
    "<!doctype html>"
    "<html lang=\"en\">"
    "<head>"
    "<meta charset=\"utf-8\" />"
    "<title>Login failed</title>"
    "</head>"
    "<body style=\"font-family: system-ui; text-align: center; padding: 50px;\">"
    "<h1>Login failed</h1>"
    "<p>{reason}</p>"
    "<p>Please close this window and try again.</p>"
    "</body>"
    "</html>"
)
