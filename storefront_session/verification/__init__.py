"""Human-verification proof providers, run before a one-time code is requested."""
from .base import HumanProofProvider
from .recaptcha import RecaptchaProofProvider

__all__ = ["HumanProofProvider", "RecaptchaProofProvider"]
