"""
Proxy pool with explicit rotation state.

Rotation is a pure step over an immutable RotationState; ProxyPool is the
single owner of the current state and is safe to share across threads.
"""

import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from config.logging import logger

PROXY_PATTERN = re.compile(r"^(https?|socks[45]?)://(?:([^:@/]+):([^@/]+)@)?([^:@/]+):(\d+)/?$")


@dataclass(frozen=True)
class Proxy:
    protocol: str
    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None

    @property
    def url(self) -> str:
        auth = f"{self.username}:{self.password}@" if self.username else ""
        return f"{self.protocol}://{auth}{self.host}:{self.port}"

    def as_requests_proxies(self) -> dict[str, str]:
        return {"http": self.url, "https": self.url}

    def __repr__(self) -> str:
        # Never log credentials
        return f"<Proxy({self.protocol}://{self.host}:{self.port})>"


@dataclass(frozen=True)
class RotationState:
    """Position in the proxy list and number of sessions handed out."""
    index: int = 0
    sessions: int = 0


def parse_proxy(value: str) -> Proxy:
    """
    Parse "scheme://[user:pass@]host:port".

    Raises:
        ValueError: if the string is not a proxy URL
    """
    match = PROXY_PATTERN.match(value.strip())
    if not match:
        # The value may carry credentials; keep it out of the message
        raise ValueError("Invalid proxy format, expected scheme://[user:pass@]host:port")
    protocol, username, password, host, port = match.groups()
    return Proxy(
        protocol=protocol,
        host=host,
        port=int(port),
        username=username,
        password=password,
    )


def next_proxy(
    proxies: Sequence[Proxy],
    state: RotationState,
) -> tuple[Optional[Proxy], RotationState]:
    """Round-robin step: the proxy to use now and the state after it."""
    if not proxies:
        return None, RotationState(index=0, sessions=state.sessions + 1)
    proxy = proxies[state.index % len(proxies)]
    return proxy, RotationState(
        index=(state.index + 1) % len(proxies),
        sessions=state.sessions + 1,
    )


class ProxyPool:
    """
    Round-robin proxy pool.

    Usage:
        pool = ProxyPool.from_file("proxies.txt")
        proxy = pool.current()
        ...
        pool.rotate()  # after a failure
    """

    def __init__(self, proxies: Sequence[Proxy] = ()):
        self.proxies = tuple(proxies)
        self._state = RotationState()
        self._current: Optional[Proxy] = None
        self._lock = threading.Lock()
        if self.proxies:
            self.rotate()

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ProxyPool":
        """Load one proxy per line; blank lines and # comments are skipped."""
        proxies = []
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, 1):
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                try:
                    proxies.append(parse_proxy(line))
                except ValueError:
                    logger.warning(f"Skipping invalid proxy on line {line_number} of {path}")

        logger.info(f"Loaded {len(proxies)} proxies from {path}")
        return cls(proxies)

    @property
    def state(self) -> RotationState:
        return self._state

    def __len__(self) -> int:
        return len(self.proxies)

    def current(self) -> Optional[Proxy]:
        return self._current

    def rotate(self) -> Optional[Proxy]:
        """Move to the next proxy and return it."""
        with self._lock:
            self._current, self._state = next_proxy(self.proxies, self._state)
            if self._current:
                logger.debug(f"Rotated to {self._current!r} (session {self._state.sessions})")
            return self._current
