"""
Feature gating handlers.

Both handlers act on the authenticated caller; there is no userId in the
request body.
"""

import logging

from fastapi import APIRouter, Depends

from cvplus_payments.api.auth import CallerIdentity, get_caller
from cvplus_payments.api.dependencies import get_entitlement_resolver
from cvplus_payments.api.schemas import CheckFeatureAccessRequest, RecordFeatureUsageRequest
from cvplus_payments.entitlements.resolver import EntitlementResolver
from cvplus_payments.errors import run_handler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/functions", tags=["entitlements"])


@router.post("/checkFeatureAccess")
def check_feature_access(
    body: CheckFeatureAccessRequest,
    caller: CallerIdentity = Depends(get_caller),
    resolver: EntitlementResolver = Depends(get_entitlement_resolver),
):
    """
    Decide whether the caller may use a premium feature right now.

    Returns the AccessDecision; a denial is a normal response, not an error.
    """
    decision = run_handler(
        "checkFeatureAccess",
        lambda: resolver.resolve(caller.uid, body.feature, body.context),
        context={"user_id": caller.uid, "feature": body.feature},
    )
    return decision.to_dict()


@router.post("/recordFeatureUsage")
def record_feature_usage(
    body: RecordFeatureUsageRequest,
    caller: CallerIdentity = Depends(get_caller),
    resolver: EntitlementResolver = Depends(get_entitlement_resolver),
):
    """Count one invocation of a feature the caller is entitled to."""

    def record():
        decision = resolver.resolve(caller.uid, body.feature, body.context)
        if not decision.has_access:
            return {"recorded": False, "access": decision.to_dict()}
        resolver.record_usage(caller.uid, body.feature)
        return {"recorded": True, "access": decision.to_dict()}

    return run_handler(
        "recordFeatureUsage",
        record,
        context={"user_id": caller.uid, "feature": body.feature},
    )
