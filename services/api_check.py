"""
Checks for the completion service credential and connectivity.
"""

import requests as http_requests

import app_config
from chat_logger import get_logger, mask_secret, redact_bearer

logger = get_logger("chatdeck")


def check_api_config(api_key: str) -> bool:
    """
    Check whether the API key looks usable.

    Problems are logged, never raised: the client keeps running and the
    request simply fails at call time.
    """
    if not api_key:
        logger.error("API key is missing. Set OPENROUTER_API_KEY in your .env file")
        return False

    if (
        api_key.lower() in app_config.API_KEY_PLACEHOLDERS
        or "YOUR_" in api_key
        or len(api_key) < 10
    ):
        logger.error(
            f"API key appears to be a placeholder ({mask_secret(api_key)}). "
            "Set your actual API key in .env"
        )
        return False

    return True


def probe_api_connection(api_key: str, url: str = None, timeout: float = 10, http=None) -> bool:
    """
    Call the model listing endpoint to confirm the service is reachable
    and accepts the key. Returns True on a 2xx answer.
    """
    url = url or app_config.MODELS_API_URL
    http = http or http_requests
    try:
        response = http.get(
            url,
            headers={
                "Authorization": f"Bearer {api_key or ''}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )
        if not response.ok:
            raise ValueError(f"API returned status {response.status_code}")
        response.json()
    except (http_requests.RequestException, ValueError) as e:
        logger.error(f"API connection test failed | url={url} | error={redact_bearer(str(e))}")
        return False

    logger.info(f"API connection test successful | url={url}")
    return True
