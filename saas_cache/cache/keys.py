"""Cache key schema.

Key format: <entity>:<id>[:<suffix>][:<param>=<value>...]

Keys are pure functions of their inputs (no clock, no randomness), so a
write path can always rebuild the exact key a read path populated.

Two rules keep pattern invalidation safe:

  * An entity's pattern with the trailing ``:*`` removed is a prefix of
    every key generated for that entity, e.g. ``user:42:*`` covers
    ``user:42`` and ``user:42:sessions``.
  * Identifier segments may not contain ``:`` or ``*``.  Otherwise user
    id ``"42:sessions"`` would alias ``user_sessions("42")``, and an id of
    ``"*"`` would turn a single-key delete into a wildcard.

Example:
    CacheKeys.user("42")               # "user:42"
    CacheKeys.user_organizations("42") # "user:42:organizations"
    CacheKeys.user_pattern("42")       # "user:42:*"
"""

from __future__ import annotations

from typing import Literal
from urllib.parse import quote

ActivityScope = Literal["user", "organization"]

_FORBIDDEN = (":", "*")


def _segment(value: object, what: str = "identifier") -> str:
    text = str(value)
    if not text:
        raise ValueError(f"{what} must not be empty")
    for ch in _FORBIDDEN:
        if ch in text:
            raise ValueError(f"{what} must not contain {ch!r} (got {text!r})")
    return text


class CacheKeys:
    """Key generators grouped by entity namespace."""

    # -- users ----------------------------------------------------------------

    @staticmethod
    def user(user_id: str) -> str:
        return f"user:{_segment(user_id)}"

    @staticmethod
    def user_organizations(user_id: str) -> str:
        return f"user:{_segment(user_id)}:organizations"

    @staticmethod
    def user_sessions(user_id: str) -> str:
        return f"user:{_segment(user_id)}:sessions"

    @staticmethod
    def user_pattern(user_id: str | None = None) -> str:
        """All keys for one user, or for every user when ``user_id`` is None."""
        return f"user:{_segment(user_id)}:*" if user_id is not None else "user:*"

    # -- organizations ----------------------------------------------------------

    @staticmethod
    def organization(organization_id: str) -> str:
        return f"organization:{_segment(organization_id)}"

    @staticmethod
    def organization_members(organization_id: str) -> str:
        return f"organization:{_segment(organization_id)}:members"

    @staticmethod
    def organization_subscription(organization_id: str) -> str:
        return f"organization:{_segment(organization_id)}:subscription"

    @staticmethod
    def organization_pattern(organization_id: str | None = None) -> str:
        if organization_id is None:
            return "organization:*"
        return f"organization:{_segment(organization_id)}:*"

    # -- billing provider ---------------------------------------------------------

    @staticmethod
    def stripe_products() -> str:
        return "stripe:products"

    @staticmethod
    def stripe_customer(customer_id: str) -> str:
        return f"stripe:customer:{_segment(customer_id)}"

    @staticmethod
    def stripe_subscription(subscription_id: str) -> str:
        return f"stripe:subscription:{_segment(subscription_id)}"

    # -- sessions, rate limits, activity ------------------------------------------

    @staticmethod
    def session(session_id: str) -> str:
        return f"session:{_segment(session_id)}"

    @staticmethod
    def rate_limit(client_id: str, endpoint: str) -> str:
        """Per-client, per-endpoint counter key.

        Endpoint paths contain ``/`` but never ``:``; client ids are IPs
        or user ids.  IPv6 addresses are percent-encoded so their colons
        do not create extra segments.
        """
        client = quote(str(client_id), safe="")
        return f"ratelimit:{_segment(endpoint, 'endpoint')}:{_segment(client, 'client')}"

    @staticmethod
    def user_activity(user_id: str, limit: int = 10) -> str:
        return CacheKeys.activity("user", user_id, limit)

    @staticmethod
    def organization_activity(organization_id: str, limit: int = 10) -> str:
        return CacheKeys.activity("organization", organization_id, limit)

    @staticmethod
    def activity(scope: ActivityScope, scope_id: str, limit: int = 10) -> str:
        if limit < 1:
            raise ValueError(f"limit must be positive (got {limit})")
        return f"activity:{_segment(scope, 'scope')}:{_segment(scope_id)}:limit={limit}"

    @staticmethod
    def activity_pattern(scope: ActivityScope, scope_id: str) -> str:
        return f"activity:{_segment(scope, 'scope')}:{_segment(scope_id)}:*"

    # -- transactional email idempotency ------------------------------------------

    @staticmethod
    def email(template: str, recipient: str, context: str | None = None) -> str:
        """Key recording that ``template`` was sent to ``recipient``.

        Parts are trimmed, lowercased and percent-encoded so that
        "Ann@Example.com " and "ann@example.com" share one key.
        """

        def encode(value: str) -> str:
            return _segment(quote(value.strip().lower(), safe=""), "email part")

        key = f"email:{encode(template)}:{encode(recipient)}"
        return f"{key}:{encode(context)}" if context else key

    # -- ad hoc ---------------------------------------------------------------------

    @staticmethod
    def custom(namespace: str, *parts: object, **params: object) -> str:
        """Build ``namespace:part...:k=v...`` for one-off call sites.

        Params are sorted by name so that keyword order never changes the
        key.  ``custom("admin", "stats", days=30)`` -> ``admin:stats:days=30``.
        """
        segments = [_segment(namespace, "namespace")]
        segments.extend(_segment(p, "key part") for p in parts)
        segments.extend(
            f"{_segment(name, 'param name')}={_segment(value, 'param value')}"
            for name, value in sorted(params.items())
        )
        return ":".join(segments)

    @staticmethod
    def custom_pattern(namespace: str, *parts: object) -> str:
        return ":".join(
            [_segment(namespace, "namespace"), *(_segment(p, "key part") for p in parts), "*"]
        )

    @staticmethod
    def parse(key: str) -> dict[str, object]:
        """Split a key into namespace, positional segments and params."""
        namespace, _, rest = key.partition(":")
        segments: list[str] = []
        params: dict[str, str] = {}
        for part in rest.split(":") if rest else []:
            name, eq, value = part.partition("=")
            if eq:
                params[name] = value
            else:
                segments.append(part)
        return {"namespace": namespace, "segments": segments, "params": params}
