from __future__ import annotations

import base64

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from admitlayer.api.deps import get_mutation_handler, get_policy_lister
from admitlayer.core.errors import PolicyApplicationError, format_error_message
from admitlayer.domain.models import AdmissionResponse, AdmissionReview
from admitlayer.engine.context import PolicyContext
from admitlayer.logging import bind_admission_context
from admitlayer.policies.cache import PolicyLister
from admitlayer.webhooks.mutation import MutationHandler

router = APIRouter()
logger = structlog.get_logger()


@router.post(
    "/mutate",
    response_model=AdmissionReview,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
async def mutate(
    review: AdmissionReview,
    handler: MutationHandler = Depends(get_mutation_handler),  # noqa: B008
    policies: PolicyLister = Depends(get_policy_lister),  # noqa: B008
) -> AdmissionReview:
    request = review.request
    if request is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="AdmissionReview carries no request",
        )

    structlog.contextvars.clear_contextvars()
    bind_admission_context(request)

    candidates = policies.list_for(request.namespace)
    context = PolicyContext.from_admission_request(request)

    try:
        patch, warnings = await handler.handle_mutation(
            request, candidates, context, request.received_at
        )
    except PolicyApplicationError as exc:
        logger.warning("admission_denied", policy=exc.policy, failed_rules=exc.failed_rules)
        response = AdmissionResponse(
            uid=request.uid,
            allowed=False,
            status={"status": "Failure", "message": format_error_message(exc)},
        )
    else:
        response = AdmissionResponse(
            uid=request.uid,
            allowed=True,
            patch=base64.b64encode(patch).decode() if patch else None,
            patch_type="JSONPatch" if patch else None,
            warnings=warnings,
        )
        logger.info("admission_allowed", patched=bool(patch), warnings=len(warnings))

    return AdmissionReview(api_version=review.api_version, response=response)
