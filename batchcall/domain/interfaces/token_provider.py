"""Interface for credential token sources.

Tokens are opaque strings (e.g. anti-forgery / CSRF tokens) merged into
outgoing request headers by the request client.
"""

import abc
from typing import List


class TokenProvider(abc.ABC):
    """Abstract Base Class for collecting request tokens."""

    @abc.abstractmethod
    def collect_tokens(self) -> List[str]:
        """Returns zero or more tokens, in collection order.

        An empty list is not an error; callers treat it as "no tokens".
        """
        pass
