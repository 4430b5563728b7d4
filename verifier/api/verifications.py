"""
Verification status and manual re-verification REST API endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from verifier.api.dependencies import get_services, verify_api_key
from verifier.container import Services
from verifier.models.api_response import LockStatus, VerificationScheduled
from verifier.models.verification import VerificationResult
from verifier.models.webhook_event import WebhookEvent
from verifier.services.processor import BackgroundProcessor, VerificationInProgressError
from verifier.services.project_mapping import (
    UnsafeIdentifierError,
    validate_issue_number,
    validate_project_name,
)
from verifier.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["verifications"], dependencies=[Depends(verify_api_key)])


def _validated_key(project_name: str, issue_number: int) -> None:
    try:
        validate_project_name(project_name)
        validate_issue_number(issue_number)
    except UnsafeIdentifierError as e:
        raise HTTPException(status_code=400, detail=str(e))


async def run_manual_verification(
    processor: BackgroundProcessor,
    project_name: str,
    issue_number: int,
) -> None:
    """
    Run a manually requested verification in the background.

    Args:
        processor: Processor that owns the per-issue locks
        project_name: Project name
        issue_number: Issue number
    """
    try:
        await processor.verify_issue(project_name, issue_number)
    except VerificationInProgressError as e:
        logger.info(f"Manual verification skipped: {e}")
    except Exception as e:
        logger.error(
            f"Manual verification failed for {project_name} #{issue_number}: {e}",
            extra={"project_name": project_name, "issue_number": issue_number},
            exc_info=True,
        )


@router.get("/verifications/{project_name}/{issue_number}", response_model=List[VerificationResult])
async def list_verifications(
    project_name: str,
    issue_number: int,
    limit: int = Query(5, ge=1, le=100),
    services: Services = Depends(get_services),
) -> List[VerificationResult]:
    """
    Verification history for a work item, newest first.

    Raises:
        HTTPException: 400 for unsafe identifiers
    """
    _validated_key(project_name, issue_number)
    return await services.result_store.list_for_issue(project_name, issue_number, limit=limit)


@router.get("/verifications/{project_name}/{issue_number}/latest", response_model=VerificationResult)
async def latest_verification(
    project_name: str,
    issue_number: int,
    services: Services = Depends(get_services),
) -> VerificationResult:
    """
    Most recent verification for a work item.

    Raises:
        HTTPException: 404 if the work item was never verified
    """
    _validated_key(project_name, issue_number)
    result = await services.result_store.latest_for_issue(project_name, issue_number)
    if result is None:
        raise HTTPException(
            status_code=404,
            detail=f"No verification found for {project_name} #{issue_number}",
        )
    return result


@router.post(
    "/verifications/{project_name}/{issue_number}",
    response_model=VerificationScheduled,
    status_code=status.HTTP_202_ACCEPTED,
)
async def trigger_verification(
    project_name: str,
    issue_number: int,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> VerificationScheduled:
    """
    Schedule a re-verification of a work item.

    The run shares the per-issue lock with the background processor and
    posts its verdict when the originating repository is known.
    """
    _validated_key(project_name, issue_number)

    logger.info(f"Manual verification requested for {project_name} #{issue_number}")
    background_tasks.add_task(
        run_manual_verification, services.processor, project_name, issue_number
    )

    return VerificationScheduled(
        status="scheduled",
        project_name=project_name,
        issue_number=issue_number,
    )


@router.get("/events", response_model=List[WebhookEvent])
async def list_events(
    project_name: Optional[str] = None,
    issue_number: Optional[int] = None,
    unresolved: bool = False,
    limit: int = Query(50, ge=1, le=500),
    services: Services = Depends(get_services),
) -> List[WebhookEvent]:
    """
    Audit query over stored webhook events, newest first.

    ``unresolved=true`` returns only events with no project mapping.
    """
    return await services.event_store.list_events(
        project_name=project_name,
        issue_number=issue_number,
        unresolved=unresolved,
        limit=limit,
    )


@router.get("/locks", response_model=LockStatus)
async def list_locks(services: Services = Depends(get_services)) -> LockStatus:
    """Keys locked in Redis by any process, and keys in flight in this one."""
    held = []
    if services.redis_client:
        held = await services.redis_client.list_verification_locks()
    return LockStatus(held=sorted(held), in_flight=sorted(services.processor.in_flight))


@router.get("/results/{result_id}", response_model=VerificationResult)
async def get_result(result_id: str, services: Services = Depends(get_services)) -> VerificationResult:
    """Single stored verification result by id."""
    result = await services.result_store.get(result_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"Verification result {result_id} not found")
    return result
