from __future__ import annotations

import httpx

from examsim.core.config import settings
from examsim.services.credential_pool import CredentialPool


def gemini_healthcheck(pool: CredentialPool, *, base_url: str | None = None) -> tuple[bool, str | None]:
    if not pool:
        return False, "missing_token"

    base = ((str(base_url).strip() if base_url is not None else "") or str(settings.gemini_base_url or "")).rstrip("/")
    if not base:
        return False, "missing_base_url"

    url = base + "/models"
    try:
        timeout = httpx.Timeout(connect=2.0, read=2.5, write=2.0, pool=2.0)
        with httpx.Client(timeout=timeout) as client:
            r = client.get(url, headers={"x-goog-api-key": pool.next()}, params={"pageSize": 1})
            if r.status_code >= 400:
                return False, f"http_{r.status_code}"
        return True, None
    except httpx.HTTPError as e:
        return False, f"unreachable:{type(e).__name__}"
