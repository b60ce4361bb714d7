from fastapi import APIRouter, HTTPException

from examsim.core.redis_client import get_redis
from examsim.services.credential_pool import CredentialPool
from examsim.services.gemini_health import gemini_healthcheck

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/live")
def live():
    return {"status": "live"}


@router.get("/health/ready")
def ready():
    try:
        r = get_redis()
        r.ping()
    except Exception as e:
        raise HTTPException(status_code=503, detail="redis not ready") from e

    # An empty key pool is a legal offline-only mode, so Gemini never fails readiness.
    ok, reason = gemini_healthcheck(CredentialPool.from_settings())
    return {"status": "ready", "gemini": "ok" if ok else reason}
