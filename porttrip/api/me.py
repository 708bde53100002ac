# api/me.py
"""
Quota status for the calling identity
"""

from fastapi import APIRouter, Depends

from ..interfaces.usage_gate import CallerIdentity, UsageGate
from ..schemas.chat_schemas import QuotaStatus
from .dependencies import get_gate, get_identity


router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/me", response_model=QuotaStatus, response_model_exclude_none=True)
async def me(
    gate: UsageGate = Depends(get_gate),
    identity: CallerIdentity = Depends(get_identity)
):
    """
    Current plan and usage

    Returns:
        {"plan": "free", "limit": 3, "used": 1, "month": "2025-09"}
    """
    return await gate.quota_status(identity)
