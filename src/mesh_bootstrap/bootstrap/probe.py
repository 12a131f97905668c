"""HTTP probing of the application through the ingress gateway.

The gateway is eventually consistent, so a failed probe is reported to the
caller rather than raised. Each probe is a single request.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import httpx

TITLE_PATTERN = re.compile(r"<title>.*?</title>", re.IGNORECASE | re.DOTALL)


def find_title(body: str) -> str | None:
    """Return the first <title>...</title> fragment of an HTML page."""
    match = TITLE_PATTERN.search(body or "")
    return match.group(0) if match else None


@dataclass
class ProbeResult:
    """Result of probing a page."""

    ok: bool
    status_code: int | None = None
    title: str | None = None
    error: str | None = None


class PageProbe:
    """Fetch a page once and check it renders a title."""

    def __init__(self, timeout_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds

    def probe(self, url: str) -> ProbeResult:
        """Request url and report whether it served a titled page.

        Args:
            url: Full page URL.

        Returns:
            ProbeResult with status information.
        """
        try:
            response = httpx.get(url, timeout=self.timeout_seconds)
        except httpx.ConnectError:
            return ProbeResult(ok=False, error="Connection refused")
        except httpx.TimeoutException:
            return ProbeResult(ok=False, error="Request timeout")
        except httpx.HTTPError as e:
            return ProbeResult(ok=False, error=str(e))

        if response.status_code != 200:
            return ProbeResult(
                ok=False,
                status_code=response.status_code,
                error=f"HTTP {response.status_code}",
            )

        title = find_title(response.text)
        if not title:
            return ProbeResult(
                ok=False,
                status_code=response.status_code,
                error="No <title> in response",
            )
        return ProbeResult(ok=True, status_code=response.status_code, title=title)
