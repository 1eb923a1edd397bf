"""
Browser configuration for the headless render tier.

Validated Pydantic model for all browser-related settings, plus
pre-configured instances for common use cases.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from siteaudit.constants import BROWSER_USER_AGENTS


class BrowserConfig(BaseModel):
    """
    Configuration for the Playwright-based HeadlessFetcher.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    model_config = ConfigDict(validate_assignment=True)

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    stealth_mode: bool = Field(
        default=True,
        description="Mask common automation indicators before any page script runs"
    )

    browser_type: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium",
        description="Browser engine to use for rendering"
    )

    timeout: int = Field(
        default=30000,
        description="Navigation timeout in milliseconds",
        ge=1000,
        le=300000
    )

    wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"] = Field(
        default="domcontentloaded",
        description="When to consider navigation complete"
    )

    network_idle_timeout: int = Field(
        default=15000,
        description="Milliseconds to wait for network idle after navigation",
        ge=0,
        le=120000
    )

    settle_delay: int = Field(
        default=2000,
        description="Fixed delay in milliseconds after network idle for late JavaScript",
        ge=0,
        le=30000
    )

    user_agent: Optional[str] = Field(
        default=None,
        description="Custom user agent. Defaults to the first desktop browser agent."
    )

    block_resources: List[str] = Field(
        default_factory=list,
        description="Resource types to block (e.g., 'image', 'font', 'media')"
    )

    launch_args: List[str] = Field(
        default_factory=list,
        description="Additional browser launch arguments (e.g., '--disable-http2')"
    )

    def get_user_agent(self) -> str:
        """Get the user agent to use for this config."""
        return self.user_agent or BROWSER_USER_AGENTS[0]

    @property
    def total_timeout_seconds(self) -> float:
        """Hard deadline for one render, covering navigation, idle wait and settle delay."""
        return (self.timeout + self.network_idle_timeout + self.settle_delay) / 1000


# --- Pre-configured Instances ---

DEFAULT_CONFIG = BrowserConfig()

STEALTH_CONFIG = BrowserConfig(
    headless=True,
    stealth_mode=True,
    timeout=45000,
    block_resources=["media"],
    launch_args=[
        "--disable-http2",  # Bypass HTTP/2 fingerprinting
        "--disable-blink-features=AutomationControlled",
        "--no-first-run",
        "--no-default-browser-check",
    ],
)
"""
Stealth configuration for sites with aggressive bot protection.

Longer timeout and launch flags that hide the automation-controlled banner.
"""
