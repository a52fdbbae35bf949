"""Repair domain schemas - statuses, issue categories and form models"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from ...schemas import Priority
from ...shared.validators import NONE_SELECTED


class RepairStatus(str, Enum):
    NEW = "new"
    DIAGNOSING = "diagnosing"
    WAITING_PARTS = "waiting_parts"
    REPAIR_IN_PROGRESS = "repair_in_progress"
    QUALITY_CHECK = "quality_check"
    IN_REPAIR = "in_repair"
    COMPLETED = "completed"
    RETURNED = "returned"
    CANCELED = "canceled"


STATUS_LABELS = {
    RepairStatus.NEW: "Nieuw",
    RepairStatus.DIAGNOSING: "Diagnose",
    RepairStatus.WAITING_PARTS: "Wacht op onderdelen",
    RepairStatus.REPAIR_IN_PROGRESS: "Reparatie bezig",
    RepairStatus.QUALITY_CHECK: "Kwaliteitscontrole",
    RepairStatus.IN_REPAIR: "In Reparatie",
    RepairStatus.COMPLETED: "Klaar",
    RepairStatus.RETURNED: "Teruggestuurd",
    RepairStatus.CANCELED: "Geannuleerd",
}

# Statuses after which an SLA deadline no longer matters
CLOSED_STATUSES = {RepairStatus.COMPLETED, RepairStatus.RETURNED, RepairStatus.CANCELED}
# Statuses counted as "in behandeling" on the dashboard
PENDING_STATUSES = {
    RepairStatus.NEW,
    RepairStatus.DIAGNOSING,
    RepairStatus.WAITING_PARTS,
    RepairStatus.REPAIR_IN_PROGRESS,
    RepairStatus.QUALITY_CHECK,
}
FINISHED_STATUSES = {RepairStatus.COMPLETED, RepairStatus.RETURNED}

OTHER_CATEGORY = "Overig"

ISSUE_CATEGORIES = [
    "Lensdefect - autofocus werkt niet",
    "Lensdefect - beeldstabilisatie defect",
    "Lensdefect - diafragma vastgelopen",
    "Lensdefect - schade aan lenselement",
    "Camera - sluiter defect",
    "Camera - sensor vervuiling",
    "Camera - schade aan behuizing",
    "Camera - batterij/oplaad probleem",
    "Camera - display defect",
    "Camera - knoppen/draaiknoppen defect",
    "Mechanische schade",
    "Water/vochtschade",
    OTHER_CATEGORY,
]

# Inventory (purchased stock) repairs use a longer list, general problems first
INVENTORY_ISSUE_CATEGORIES = [
    f"❓ {OTHER_CATEGORY}",
    "🧹 Schoonmaak en onderhoud",
    "🔍 Algemene inspectie",
    "💻 Firmware/software probleem",
    "⚡ Elektronica storing",
    "🌫️ Stof binnendringen",
    "💧 Water/vochtschade",
    "💥 Mechanische schade",
    "Erosie - lensmount slijtage",
    "Erosie - elektronische contacten gecorrodeerd",
    "Erosie - afdichtingsrubbers versleten",
    "Erosie - lettering/opdruk vervaagd",
    "Erosie - coating slijtage",
    "Erosie - rubber grip plakkerig/degradatie",
    "Erosie - rubber grip loslating",
    "Camera - hotshoe/flitsschoen defect",
    "Camera - USB/HDMI poort defect",
    "Camera - geheugenkaartslot defect",
    "Camera - modusknop defect",
    "Camera - knoppen/draaiknoppen defect",
    "Camera - viewfinder/zoeker probleem",
    "Camera - display defect",
    "Camera - batterijcompartiment defect",
    "Camera - batterij/oplaad probleem",
    "Camera - schade aan behuizing",
    "Camera - sensor beschadigd/dode pixels",
    "Camera - sensor vervuiling",
    "Camera - spiegelmechanisme defect",
    "Camera - sluiter versleten (hoog aantal clicks)",
    "Camera - sluiter defect",
    "Lensdefect - lenselement losgeraakt",
    "Lensdefect - focusring probleem",
    "Lensdefect - zoomring vastgelopen",
    "Lensdefect - krasjes op lens coating",
    "Lensdefect - nevel/haze in lens",
    "Lensdefect - schimmel in lens",
    "Lensdefect - schade aan lenselement",
    "Lensdefect - diafragma olie-lekkage",
    "Lensdefect - diafragma vastgelopen",
    "Lensdefect - beeldstabilisatie defect",
    "Lensdefect - autofocus traag/onnauwkeurig",
    "Lensdefect - autofocus werkt niet",
]


class FileField(str, Enum):
    PHOTOS = "photos"
    ATTACHMENTS = "attachments"


class Repair(BaseModel):
    """Repair ticket as returned by the upstream API (unknown fields kept)"""

    id: str
    title: str = ""
    status: str = RepairStatus.NEW.value
    priority: str = Priority.MEDIUM.value
    description: Optional[str] = None
    issueCategory: Optional[str] = None
    productSku: Optional[str] = None
    productName: Optional[str] = None
    estimatedCost: Optional[int] = None
    assignedUserId: Optional[str] = None
    customerId: Optional[str] = None
    orderId: Optional[str] = None
    caseId: Optional[str] = None
    slaDeadline: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    photos: list[str] = []
    attachments: list[str] = []
    partsUsed: list = []

    class Config:
        extra = "allow"

    @field_validator("photos", "attachments", "partsUsed", mode="before")
    @classmethod
    def null_to_empty(cls, v):
        return v or []


class RepairEdit(BaseModel):
    """Edit-in-place form of the repair detail view; estimatedCost in euros"""

    title: str
    description: Optional[str] = None
    productSku: Optional[str] = None
    productName: Optional[str] = None
    issueCategory: Optional[str] = None
    estimatedCost: Optional[float] = None
    assignedUserId: Optional[str] = NONE_SELECTED
    priority: Priority = Priority.MEDIUM


class RepairStatusUpdate(BaseModel):
    status: RepairStatus


class FileDelete(BaseModel):
    fileType: FileField
    fileUrl: str


class RepairDetail(BaseModel):
    repair: Repair
    statusLabel: str
    isOverdue: bool
    technicianName: Optional[str] = None
    photos: list[str] = []
    attachments: list[str] = []
    activities: list[dict] = []
    notes: list[dict] = []


class RepairWizardForm(BaseModel):
    """Everything collected by the four-step repair wizard; estimatedCost in euros"""

    title: str = ""
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    estimatedCost: Optional[float] = None
    productSku: Optional[str] = None
    productName: Optional[str] = None
    issueCategory: Optional[str] = None
    otherCategoryDetails: Optional[str] = None
    assignedUserId: Optional[str] = NONE_SELECTED
    slaDeadline: Optional[datetime] = None
    # Step 1: the order the repair is for, and that order's customer when known
    order: Optional[dict] = None
    customer: Optional[dict] = None
    # Set when the wizard is opened from a case or an email thread
    caseId: Optional[str] = None
    emailThreadId: Optional[str] = None


class InventoryRepairForm(BaseModel):
    """Two-step wizard for repairs on purchased stock (no customer or order)"""

    title: str = ""
    description: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    productName: Optional[str] = None
    brandModel: str = ""
    issueCategory: Optional[str] = None
    otherCategoryDetails: Optional[str] = None
    assignedUserId: Optional[str] = NONE_SELECTED
    slaDeadline: Optional[datetime] = None


class WizardStepRequest(BaseModel):
    """Ask whether the wizard may leave `step` with the data entered so far"""

    step: int
    form: dict = {}


class WizardStepResponse(BaseModel):
    step: int
    totalSteps: int
    label: str
