"""Token providers for anti-forgery / CSRF request headers.

Tokens can be given explicitly, scraped from a saved HTML page (hidden
``__RequestVerificationToken`` inputs and csrf meta tags), or chained from
several providers.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from bs4 import BeautifulSoup

from batchcall.domain.interfaces.token_provider import TokenProvider

logger = logging.getLogger(__name__)

TOKEN_INPUT_NAME = "__RequestVerificationToken"
TOKEN_META_NAMES = ("csrf-token", "request-verification-token")


class StaticTokenProvider(TokenProvider):
    """Returns a fixed list of tokens, skipping empty ones."""

    def __init__(self, tokens: Iterable[str] = ()):
        self._tokens = [t for t in tokens if t]

    def collect_tokens(self) -> List[str]:
        return list(self._tokens)


class HtmlTokenProvider(TokenProvider):
    """Collects tokens the way a page embeds them for its own XHR calls.

    The page is parsed on first use and the tokens are cached. A saved page is
    read as bytes so BeautifulSoup can detect its encoding.
    """

    def __init__(self, html: Union[str, bytes, None] = None, path: Union[str, Path, None] = None):
        self._html = html
        self._path = Path(path) if path is not None else None
        self._tokens: Optional[List[str]] = None

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "HtmlTokenProvider":
        return cls(path=path)

    def _read_page(self) -> Union[str, bytes]:
        if self._html is not None:
            return self._html
        if self._path is None:
            return ""
        try:
            return self._path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read token page {self._path}: {e}")
            return ""

    def collect_tokens(self) -> List[str]:
        if self._tokens is None:
            self._tokens = self._parse(self._read_page())
        return list(self._tokens)

    @staticmethod
    def _parse(page: Union[str, bytes]) -> List[str]:
        soup = BeautifulSoup(page, "html.parser")
        tokens = [
            tag.get("value")
            for tag in soup.find_all("input", attrs={"name": TOKEN_INPUT_NAME})
            if tag.get("value")
        ]
        # Only the first matching meta tag counts
        meta = soup.find("meta", attrs={"name": list(TOKEN_META_NAMES)})
        if meta is not None and meta.get("content"):
            tokens.append(meta["content"])
        logger.debug(f"Collected {len(tokens)} token(s) from HTML")
        return tokens


class ChainedTokenProvider(TokenProvider):
    """Concatenates the tokens of several providers in order."""

    def __init__(self, providers: Iterable[TokenProvider]):
        self._providers = list(providers)

    def collect_tokens(self) -> List[str]:
        tokens: List[str] = []
        for provider in self._providers:
            try:
                tokens.extend(provider.collect_tokens())
            except Exception as e:
                logger.warning(f"Token provider {type(provider).__name__} failed: {e}")
        return tokens
