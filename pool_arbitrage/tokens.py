"""
Token registry: canonical token metadata looked up by symbol or address.
"""

from typing import Dict, Iterable, Iterator, Optional

from .exceptions import ConfigurationError
from .types import Token


class TokenRegistry:
    """
    Immutable lookup of configured tokens.

    Symbols are matched case-insensitively, addresses by their lower-cased
    form. The registry is built once at startup and shared read-only.
    """

    def __init__(self, tokens: Iterable[Token], native_symbol: Optional[str] = None):
        self._by_symbol: Dict[str, Token] = {}
        self._by_address: Dict[str, Token] = {}

        for token in tokens:
            symbol = token.symbol.upper()
            if symbol in self._by_symbol:
                raise ConfigurationError(f"Duplicate token symbol: {token.symbol}")
            if token.key in self._by_address:
                raise ConfigurationError(
                    f"Duplicate token address {token.address} "
                    f"({self._by_address[token.key].symbol} and {token.symbol})"
                )
            if token.decimals < 0 or token.decimals > 36:
                raise ConfigurationError(
                    f"Token {token.symbol} has invalid decimals: {token.decimals}"
                )
            self._by_symbol[symbol] = token
            self._by_address[token.key] = token

        self._native_symbol = native_symbol.upper() if native_symbol else None
        if self._native_symbol and self._native_symbol not in self._by_symbol:
            raise ConfigurationError(
                f"Native token '{native_symbol}' not found in token registry"
            )

    def get(self, symbol: str) -> Optional[Token]:
        return self._by_symbol.get(symbol.upper())

    def require(self, symbol: str) -> Token:
        """
        Look up a token by symbol.

        Raises:
            ConfigurationError: If the symbol is not registered
        """
        token = self.get(symbol)
        if token is None:
            raise ConfigurationError(f"Unknown token symbol: {symbol}")
        return token

    def by_address(self, address: str) -> Optional[Token]:
        return self._by_address.get(address.lower())

    @property
    def native(self) -> Optional[Token]:
        """The token treated as the native currency, if configured."""
        if self._native_symbol is None:
            return None
        return self._by_symbol[self._native_symbol]

    @property
    def symbols(self):
        return sorted(token.symbol for token in self._by_symbol.values())

    def __contains__(self, symbol: str) -> bool:
        return symbol.upper() in self._by_symbol

    def __iter__(self) -> Iterator[Token]:
        return iter(self._by_symbol.values())

    def __len__(self) -> int:
        return len(self._by_symbol)
