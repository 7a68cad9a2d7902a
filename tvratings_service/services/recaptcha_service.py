"""Google reCAPTCHA verification."""

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


class RecaptchaVerifier:
    """Verifies reCAPTCHA response tokens with a single remote call."""

    def __init__(
            self,
            secret: str,
            session: Optional[requests.Session] = None,
            timeout: float = 10,
            verify_url: str = RECAPTCHA_VERIFY_URL
    ):
        self.secret = secret
        self.session = session or requests.Session()
        self.timeout = timeout
        self.verify_url = verify_url

    def verify_token(self, token: Optional[str]) -> bool:
        """
        Ask Google whether a reCAPTCHA response token is valid.

        Network and parsing errors count as a failed verification.
        """
        if not token:
            return False

        try:
            response = self.session.post(
                self.verify_url,
                params={"secret": self.secret, "response": token},
                timeout=self.timeout
            )
            result = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Error while verifying recaptcha token: {e}")
            return False

        logger.info(f"Recaptcha verification {response.status_code} - {result}")
        return isinstance(result, dict) and result.get("success") is True
