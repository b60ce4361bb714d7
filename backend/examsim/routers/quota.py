from fastapi import APIRouter, Depends

from examsim.schemas.exam import QuotaResponse
from examsim.services.exam_registry import ExamRegistry, get_registry
from examsim.services.usage_quota import UsageQuota

router = APIRouter(tags=["quota"])


@router.get("/quota", response_model=QuotaResponse)
def get_quota(registry: ExamRegistry = Depends(get_registry)):
    quota = registry.quota or UsageQuota()
    status = quota.status()
    return QuotaResponse(remaining=status.remaining, quota=status.quota, day=status.day)
