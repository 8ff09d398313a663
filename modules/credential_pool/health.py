"""
Credential health checks.

Probes each provider's model-listing endpoint with the credential and
maps the response onto the pool's status vocabulary.
"""

import asyncio
from typing import Dict, Optional, Tuple

import httpx

from shared.errors import RetryableError
from shared.logging import get_logger
from shared.retry import retry_with_backoff

from .pool import CredentialPool, mask_key

logger = get_logger("credential_pool.health")

HEALTH_CHECK_TIMEOUT = 15.0

MODEL_LIST_ENDPOINTS = {
    "google": "https://generativelanguage.googleapis.com/v1beta/models",
    "openai": "https://api.openai.com/v1/models",
    "openrouter": "https://openrouter.ai/api/v1/models",
}


def _build_probe(provider: str, key: str) -> Tuple[str, Dict[str, str], Dict[str, str]]:
    """URL, query params and headers for a provider's listing call."""
    if provider not in MODEL_LIST_ENDPOINTS:
        raise ValueError(f"Unknown provider: {provider}")
    url = MODEL_LIST_ENDPOINTS[provider]
    if provider == "google":
        return url, {"key": key}, {}
    return url, {}, {"Authorization": f"Bearer {key}"}


@retry_with_backoff(max_attempts=2, base_delay=1)
async def _probe(client: httpx.AsyncClient, provider: str, key: str) -> int:
    url, params, headers = _build_probe(provider, key)
    try:
        response = await client.get(url, params=params, headers=headers)
    except httpx.RequestError as e:
        raise RetryableError(f"Network error checking credential: {str(e)}") from e
    return response.status_code


async def check_credential(
    pool: CredentialPool,
    key: str,
    client: Optional[httpx.AsyncClient] = None
) -> str:
    """
    Check one credential and record the outcome on the pool.

    Args:
        pool: Pool that owns the credential
        key: Credential to check
        client: Optional shared HTTP client (one is created otherwise)

    Returns:
        Resulting status: "active", "rate_limited" or "dead"
    """
    pool.set_status(key, "checking")

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=HEALTH_CHECK_TIMEOUT) as http_client:
                status_code = await _probe(http_client, pool.provider, key)
        else:
            status_code = await _probe(client, pool.provider, key)
    except RetryableError as e:
        pool.set_status(key, "dead", error=str(e))
        logger.warning(
            "Credential check failed with transport error",
            extra={"provider": pool.provider, "key": mask_key(key), "error": str(e)}
        )
        return "dead"

    if status_code == 200:
        status = "active"
        pool.set_status(key, status)
    elif status_code == 429:
        status = "rate_limited"
        pool.set_status(key, status, error="429 rate limited during health check")
    else:
        status = "dead"
        pool.set_status(key, status, error=f"HTTP {status_code} during health check")

    logger.info(
        f"Credential check: {status}",
        extra={"provider": pool.provider, "key": mask_key(key), "status_code": status_code}
    )
    return status


async def check_all(pool: CredentialPool, client: Optional[httpx.AsyncClient] = None) -> Dict[str, int]:
    """
    Check every credential in the pool concurrently.

    Returns:
        Counts keyed by "active", "dead" and "rate_limited"
    """
    keys = [c.key for c in pool.credentials()]
    counts = {"active": 0, "dead": 0, "rate_limited": 0}
    if not keys:
        return counts

    if client is None:
        async with httpx.AsyncClient(timeout=HEALTH_CHECK_TIMEOUT) as http_client:
            results = await asyncio.gather(*(check_credential(pool, k, http_client) for k in keys))
    else:
        results = await asyncio.gather(*(check_credential(pool, k, client) for k in keys))

    for status in results:
        counts[status] += 1

    logger.info(
        f"Checked {len(keys)} credential(s)",
        extra={"provider": pool.provider, **counts}
    )
    return counts
