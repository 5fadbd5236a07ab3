"""Outgoing-request context and the ordered pre-send hook pipeline.

This module provides two core components:

* :class:`OutgoingRequest` -- An immutable snapshot of the request about to be
  dispatched (method, URL and headers).
* :class:`RequestPipeline` -- An explicit, ordered list of pre-send hooks.
  Every authenticator registers exactly one hook when the session is set up;
  the client runs the chain once, synchronously, immediately before each
  request is sent.

The chain follows a pipeline pattern: each hook receives the output of the
previous hook and returns a new :class:`OutgoingRequest`, enabling additive
transformations such as injecting an ``Authorization`` header.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Mapping

PreSendHook = Callable[["OutgoingRequest"], "OutgoingRequest"]
"""A pure function ``(OutgoingRequest) -> OutgoingRequest``.

Hooks must not block, must be idempotent and must not mutate their input.
"""


@dataclass(frozen=True)
class OutgoingRequest:
    """Request state threaded through the pre-send hook chain.

    Attributes:
        method: HTTP method (e.g. ``"GET"``).
        url: The fully resolved request URL.
        headers: Request headers. Treat as read-only; use
            :meth:`with_header` to derive a modified request.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)

    def with_header(self, name: str, value: str) -> OutgoingRequest:
        """Return a copy of this request with header *name* set to *value*.

        An existing header with the same name (case-insensitive) is replaced.
        """
        headers = {
            key: existing
            for key, existing in self.headers.items()
            if key.lower() != name.lower()
        }
        headers[name] = value
        return replace(self, headers=headers)

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None


class RequestPipeline:
    """Ordered pre-send hooks owned by one client session.

    Hooks run in registration order for every request. A hook can be
    registered only once; registering it again raises :class:`ValueError`
    so that a session set up twice is noticed instead of silently doubling
    its hooks.
    """

    def __init__(self) -> None:
        self._hooks: list[PreSendHook] = []

    def register(self, hook: PreSendHook) -> None:
        """Append *hook* to the end of the chain.

        Args:
            hook: The pre-send hook to register.

        Raises:
            ValueError: If *hook* is already registered.
        """
        if hook in self._hooks:
            raise ValueError(f"Pre-send hook {hook!r} is already registered")
        self._hooks.append(hook)

    @property
    def hooks(self) -> tuple[PreSendHook, ...]:
        """The registered hooks, in execution order."""
        return tuple(self._hooks)

    def apply(self, request: OutgoingRequest) -> OutgoingRequest:
        """Run every hook over *request* and return the final request.

        Args:
            request: The request as built by the caller.

        Returns:
            The request after all hooks ran. *request* itself is unchanged.
        """
        for hook in self._hooks:
            request = hook(request)
        return request

    def __len__(self) -> int:
        return len(self._hooks)
