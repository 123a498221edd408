"""
reCAPTCHA proof provider. Mounts the storefront login page in Playwright and
executes the widget to obtain a token. Uses the shared BrowserManager.
"""
import asyncio
import logging
from typing import Optional

from playwright.async_api import Page

from ..browser import BrowserManager
from ..errors import ChallengeSetupFailed
from .base import HumanProofProvider

logger = logging.getLogger(__name__)

# Widget load polling: 50 x 100ms, same budget the web client allows
WIDGET_POLL_ATTEMPTS = 50
WIDGET_POLL_INTERVAL = 0.1

_WIDGET_READY_JS = """
    () => typeof window.grecaptcha !== 'undefined'
        && typeof window.grecaptcha.execute === 'function'
"""

_EXECUTE_JS = """
    ([siteKey, action]) => new Promise((resolve, reject) => {
        window.grecaptcha.ready(() => {
            window.grecaptcha.execute(siteKey, { action })
                .then(resolve)
                .catch((err) => reject(new Error(String(err))));
        });
    })
"""


class RecaptchaProofProvider(HumanProofProvider):
    """Executes the login page's reCAPTCHA widget in a browser tab."""

    provider_name = "recaptcha"

    def __init__(self, browser: BrowserManager, page_url: str, site_key: str):
        self._browser = browser
        self._page_url = page_url
        self._site_key = site_key
        self._page: Optional[Page] = None

    @property
    def is_mounted(self) -> bool:
        return self._page is not None

    async def _mount(self) -> Page:
        if self._page is not None:
            return self._page
        try:
            self._page = await self._browser.open_page(self._page_url)
        except Exception as e:
            raise ChallengeSetupFailed(f"Could not open verification page: {e}") from e
        return self._page

    async def _wait_for_widget(self, page: Page) -> None:
        for _ in range(WIDGET_POLL_ATTEMPTS):
            try:
                if await page.evaluate(_WIDGET_READY_JS):
                    return
            except Exception as e:
                raise ChallengeSetupFailed(f"Verification page unavailable: {e}") from e
            await asyncio.sleep(WIDGET_POLL_INTERVAL)
        raise ChallengeSetupFailed("reCAPTCHA failed to load within 5 seconds")

    async def obtain_proof(self, action: str = "login") -> str:
        if not self._site_key:
            raise ChallengeSetupFailed("reCAPTCHA site key not configured")

        page = await self._mount()
        await self._wait_for_widget(page)
        try:
            token = await page.evaluate(_EXECUTE_JS, [self._site_key, action])
        except Exception as e:
            logger.error("reCAPTCHA execution failed: %s", e)
            raise ChallengeSetupFailed("Failed to generate reCAPTCHA token") from e

        if not token or not isinstance(token, str):
            raise ChallengeSetupFailed("reCAPTCHA returned an empty token")
        logger.info("reCAPTCHA token generated for action %s", action)
        return token

    async def release(self) -> None:
        if self._page is None:
            return
        page, self._page = self._page, None
        await self._browser.close_page(page)
        logger.debug("reCAPTCHA page released")
