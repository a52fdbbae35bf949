"""Repair router - FastAPI endpoints for repair tickets and the creation wizards"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from ...auth import AuthUser, Role, require_roles
from ...cache import QueryCache, get_query_cache
from ...schemas import MutationResponse
from ...shared.forms import parse_form, read_uploads
from ...submit_guard import SubmitGuard, get_submit_guard
from ...upstream import UpstreamClient, get_upstream
from .analytics import RepairAnalytics
from .schemas import (
    INVENTORY_ISSUE_CATEGORIES,
    ISSUE_CATEGORIES,
    FileDelete,
    InventoryRepairForm,
    RepairDetail,
    RepairEdit,
    RepairStatusUpdate,
    RepairWizardForm,
    WizardStepRequest,
    WizardStepResponse,
)
from .service import RepairService
from .wizard import InventoryRepairWizard, RepairWizard, wizard_for_step

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/repairs", tags=["Repairs"])


def get_repair_service(
    upstream: UpstreamClient = Depends(get_upstream),
    cache: QueryCache = Depends(get_query_cache),
    guard: SubmitGuard = Depends(get_submit_guard),
    current_user: AuthUser = Depends(require_roles(Role.ADMIN, Role.TECHNICUS)),
) -> RepairService:
    """Dependency injection for RepairService"""
    return RepairService(upstream, cache, guard, current_user)


# ============================================================================
# LISTS AND DASHBOARD
# ============================================================================


@router.get("")
async def list_repairs(service: RepairService = Depends(get_repair_service)):
    return await service.list_repairs()


@router.get("/analytics", response_model=RepairAnalytics)
async def repair_analytics(service: RepairService = Depends(get_repair_service)):
    """Dashboard figures: counts, overdue repairs, average days, top technicians and issues"""
    return await service.analytics()


@router.get("/technicians")
async def list_technicians(service: RepairService = Depends(get_repair_service)):
    return await service.list_technicians()


@router.get("/issue-categories")
async def list_issue_categories(inventory: bool = Query(False)):
    return INVENTORY_ISSUE_CATEGORIES if inventory else ISSUE_CATEGORIES


# ============================================================================
# CREATION WIZARDS
# ============================================================================


@router.get("/wizard/orders")
async def wizard_orders(
    search: Optional[str] = Query(None), service: RepairService = Depends(get_repair_service)
):
    """Orders to pick from in the first wizard step"""
    return await service.search_orders(search)


@router.post("/wizard/{kind}/next", response_model=WizardStepResponse)
async def wizard_next_step(kind: str, data: WizardStepRequest):
    """Validate the current step; answers with the step to show next"""
    wizard = wizard_for_step(kind, data.step, data.form)
    wizard.next()
    return WizardStepResponse(step=wizard.step, totalSteps=wizard.total_steps, label=wizard.label)


@router.post("", response_model=MutationResponse)
async def create_repair(
    data: str = Form(...),
    files: list[UploadFile] = File([]),
    service: RepairService = Depends(get_repair_service),
):
    """Submit the customer repair wizard: JSON `data` plus optional `files`"""
    wizard = RepairWizard(parse_form(RepairWizardForm, data))
    return await service.create(wizard, await read_uploads(files))


@router.post("/inventory", response_model=MutationResponse)
async def create_inventory_repair(data: InventoryRepairForm, service: RepairService = Depends(get_repair_service)):
    return await service.create(InventoryRepairWizard(data))


# ============================================================================
# SINGLE REPAIR
# ============================================================================


@router.get("/{repair_id}", response_model=RepairDetail)
async def get_repair(repair_id: str, service: RepairService = Depends(get_repair_service)):
    return await service.detail(repair_id)


@router.patch("/{repair_id}", response_model=MutationResponse)
async def update_repair(repair_id: str, data: RepairEdit, service: RepairService = Depends(get_repair_service)):
    return await service.save_edit(repair_id, data)


@router.patch("/{repair_id}/status", response_model=MutationResponse)
async def update_repair_status(
    repair_id: str, data: RepairStatusUpdate, service: RepairService = Depends(get_repair_service)
):
    return await service.update_status(repair_id, data.status)


@router.post("/{repair_id}/files", response_model=MutationResponse)
async def upload_repair_files(
    repair_id: str,
    files: list[UploadFile] = File(...),
    service: RepairService = Depends(get_repair_service),
):
    return await service.upload_files(repair_id, await read_uploads(files))


@router.post("/{repair_id}/files/delete", response_model=MutationResponse)
async def delete_repair_file(repair_id: str, data: FileDelete, service: RepairService = Depends(get_repair_service)):
    return await service.delete_file(repair_id, data.fileType, data.fileUrl)


@router.delete("/{repair_id}", response_model=MutationResponse)
async def delete_repair(repair_id: str, service: RepairService = Depends(get_repair_service)):
    return await service.delete(repair_id)
