"""Write-path invalidation helpers.

Call these after the database transaction commits, never before: a read
racing an uncommitted write would repopulate the cache with the old row.
They go through CacheService, so a cache outage is logged and ignored.

    await org_repo.update(org)
    await invalidate_organization(cache, org.id)
"""

from __future__ import annotations

from saas_cache.cache.keys import CacheKeys
from saas_cache.cache.service import CacheService


async def invalidate_user(cache: CacheService, user_id: str) -> int:
    """Profile edit, role change, ban: drop every cached view of the user."""
    removed = await cache.invalidate_pattern(CacheKeys.user_pattern(user_id))
    removed += await cache.invalidate_pattern(CacheKeys.activity_pattern("user", user_id))
    return removed


async def invalidate_organization(cache: CacheService, organization_id: str) -> int:
    removed = await cache.invalidate_pattern(CacheKeys.organization_pattern(organization_id))
    removed += await cache.invalidate_pattern(
        CacheKeys.activity_pattern("organization", organization_id)
    )
    return removed


async def invalidate_subscription(
    cache: CacheService,
    organization_id: str,
    *,
    subscription_id: str | None = None,
    customer_id: str | None = None,
) -> None:
    """Billing webhook landed: the org's plan and the billing objects changed."""
    await cache.delete(CacheKeys.organization_subscription(organization_id))
    await cache.delete(CacheKeys.organization(organization_id))
    if subscription_id is not None:
        await cache.delete(CacheKeys.stripe_subscription(subscription_id))
    if customer_id is not None:
        await cache.delete(CacheKeys.stripe_customer(customer_id))


async def invalidate_session(cache: CacheService, session_id: str, user_id: str) -> None:
    await cache.delete(CacheKeys.session(session_id))
    await cache.delete(CacheKeys.user_sessions(user_id))
