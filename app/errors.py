"""Error taxonomy shared by the fetcher, the CSV pipeline and the store.

Coercion problems are intentionally absent: cell conversion degrades to a safe
default (0, False, or the stringified value) instead of raising.
"""
from typing import Optional


class PokemonLabError(Exception):
    """Base class for errors surfaced to API and CLI callers."""


class NetworkError(PokemonLabError):
    """Transport failure or non-success status from PokeAPI."""

    def __init__(self, message: str, *, url: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FormatError(PokemonLabError):
    """CSV source has no header row or cannot be parsed."""


class BusyError(PokemonLabError):
    """A fetch or import was started while another one is still running."""

    def __init__(self, running: str) -> None:
        super().__init__(f"Another operation is already in progress: {running}")
        self.running = running


class EmptyExportError(PokemonLabError):
    """Export requested while the table has no rows."""

    def __init__(self) -> None:
        super().__init__("No data to export")
