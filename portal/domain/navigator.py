"""
Navigator protocol: the window the portal is displayed in.
"""

from typing import Protocol


class Navigator(Protocol):
    """Protocol for the surface hosting the portal (a browser tab, a console)."""

    def reload(self) -> None:
        """Full reload of the client; nothing of the current state survives."""
        ...

    def redirect(self, url: str) -> None:
        """Leave the portal for *url* (identity provider, instance)."""
        ...

    def replace_url(self, url: str) -> None:
        """Replace the visible address without reloading."""
        ...
