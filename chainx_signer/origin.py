"""Origin resolution for pairing and API metadata."""

from __future__ import annotations

from typing import Optional, Protocol


class OriginProvider(Protocol):
    """Supplies the hostname of the context the client runs on behalf of."""

    def __call__(self) -> Optional[str]:
        ...


class StaticOriginProvider:
    """Origin provider returning a fixed hostname (or nothing)."""

    def __init__(self, hostname: str | None = None) -> None:
        self.hostname = hostname

    def __call__(self) -> Optional[str]:
        return self.hostname


def resolve_origin(hostname: str | None, plugin: str) -> str:
    """Return the identity presented to the signer.

    The hostname wins unless it is empty or ``localhost``, in which case the
    plugin name is used. A leading ``www.`` is dropped.
    """

    if hostname and hostname != "localhost":
        origin = hostname
    else:
        origin = plugin
    if origin.startswith("www."):
        origin = origin.replace("www.", "", 1)
    return origin
