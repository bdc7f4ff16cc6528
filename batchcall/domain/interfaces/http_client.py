"""Interface for the HTTP transport.

Defines the one capability the request client needs: send a JSON POST and
receive status plus body, or fail. Concrete adapters hide the specifics of
the HTTP library in use.
"""

import abc
from typing import Any

from batchcall.domain.models.common import Headers, HttpResponse


class HTTPClient(abc.ABC):
    """Abstract Base Class for issuing JSON requests."""

    @abc.abstractmethod
    async def post_json(self, url: str, payload: Any, headers: Headers) -> HttpResponse:
        """Sends ``payload`` as a JSON body to ``url``.

        Args:
            url: Target URL (absolute, or relative to the adapter's base URL).
            payload: JSON-serialisable request body.
            headers: Complete set of headers to send.

        Returns:
            The response status and body text. Non-2xx statuses are returned,
            not raised.

        Raises:
            AttemptTimeoutError: If the transport itself timed out.
            TransportError: On connectivity failures.
        """
        pass
