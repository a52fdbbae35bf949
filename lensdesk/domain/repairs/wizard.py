"""
Repair creation wizards.

The console offers two wizards: the four-step one for customer repairs
(order, details, planning, files) and the two-step one for repairs on
purchased stock. Both validate each step before moving on and package
their collected data into the upstream repair payload.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional, Sequence

from ...auth import Role
from ...errors import ValidationFailed
from ...shared.dates import iso_utc
from ...shared.forms import validate_form
from ...shared.validators import blank_to_none, check_file_count, require, to_cents
from ...upstream import FilePart
from .schemas import OTHER_CATEGORY, InventoryRepairForm, RepairStatus, RepairWizardForm

logger = logging.getLogger(__name__)

TECHNICIAN_ROLES = {Role.TECHNICUS.value, Role.ADMIN.value}


def is_other_category(category: Optional[str]) -> bool:
    """'Overig', with or without the emoji prefix of the inventory list"""
    if not category:
        return False
    return category == OTHER_CATEGORY or category.split(" ", 1)[-1] == OTHER_CATEGORY


def resolve_issue_category(category: Optional[str], details: Optional[str]) -> Optional[str]:
    """'Overig' plus free-text details becomes 'Overig: <details>'"""
    if is_other_category(category) and details and details.strip():
        return f"{OTHER_CATEGORY}: {details.strip()}"
    return blank_to_none(category)


def technicians(users: Iterable[dict]) -> list[dict]:
    """Users a repair can be assigned to"""
    return [u for u in users if u.get("role") in TECHNICIAN_ROLES]


def search_orders(orders: Sequence[dict], query: Optional[str]) -> list[dict]:
    """Orders whose number or customer email contains the query"""
    if not query or not query.strip():
        return list(orders)
    needle = query.strip().lower()
    return [
        o for o in orders
        if needle in str(o.get("orderNumber") or "").lower() or needle in (o.get("customerEmail") or "").lower()
    ]


def customer_name(customer: Optional[dict]) -> Optional[str]:
    if not customer:
        return None
    name = f"{customer.get('firstName') or ''} {customer.get('lastName') or ''}".strip()
    return name or None


class _Wizard(ABC):
    step_labels: Sequence[str] = ()

    def __init__(self, step: int = 1):
        self.step = min(max(step, 1), self.total_steps)
        self.files: list[FilePart] = []

    @property
    def total_steps(self) -> int:
        return len(self.step_labels)

    @property
    def label(self) -> str:
        return self.step_labels[self.step - 1]

    @abstractmethod
    def validate_step(self, step: int) -> None:
        """Raise ValidationFailed when `step` is incomplete"""

    def validate(self) -> None:
        """Check every step; used right before submitting"""
        for step in range(1, self.total_steps + 1):
            self.validate_step(step)

    def next(self) -> int:
        self.validate_step(self.step)
        if self.step < self.total_steps:
            self.step += 1
        return self.step

    def back(self) -> int:
        if self.step > 1:
            self.step -= 1
        return self.step

    def add_files(self, files: Sequence[FilePart]) -> None:
        check_file_count(len(files), len(self.files))
        self.files.extend(files)

    def remove_file(self, index: int) -> None:
        if 0 <= index < len(self.files):
            self.files.pop(index)


class RepairWizard(_Wizard):
    """Customer repair: pick an order, describe the repair, plan it, attach files"""

    step_labels = ("Order", "Details", "Planning", "Bestanden")

    def __init__(self, form: Optional[RepairWizardForm] = None, step: int = 1):
        self.form = form or RepairWizardForm()
        super().__init__(step)

    def select_order(self, order: dict, customer: Optional[dict] = None) -> None:
        self.form.order = order
        self.form.customer = customer

    def validate_step(self, step: int) -> None:
        if step == 2:
            require(self.form.title, "Titel is verplicht")

    def payload(self) -> dict:
        form = self.form
        order = form.order or {}
        customer = form.customer or {}
        payload = {
            "title": form.title.strip(),
            "description": blank_to_none(form.description),
            "priority": form.priority.value,
            "estimatedCost": to_cents(form.estimatedCost),
            "assignedUserId": blank_to_none(form.assignedUserId),
            "slaDeadline": iso_utc(form.slaDeadline) if form.slaDeadline else None,
            "productSku": blank_to_none(form.productSku),
            "productName": blank_to_none(form.productName),
            "issueCategory": resolve_issue_category(form.issueCategory, form.otherCategoryDetails),
            "customerId": order.get("customerId"),
            "orderId": order.get("id"),
            "customerName": customer_name(customer),
            "customerEmail": customer.get("email") or order.get("customerEmail"),
            "orderNumber": order.get("orderNumber"),
            "status": RepairStatus.NEW.value,
            "caseId": blank_to_none(form.caseId),
            "emailThreadId": blank_to_none(form.emailThreadId),
        }
        return {k: v for k, v in payload.items() if v is not None}


class InventoryRepairWizard(_Wizard):
    """Repair on purchased stock: brand/model and details, then confirm"""

    step_labels = ("Gegevens", "Bevestig")

    def __init__(self, form: Optional[InventoryRepairForm] = None, step: int = 1):
        self.form = form or InventoryRepairForm()
        super().__init__(step)

    def validate_step(self, step: int) -> None:
        if step == 1:
            require(self.form.brandModel, "Merk & Model is verplicht")
            require(self.form.title, "Titel is verplicht")

    def payload(self) -> dict:
        form = self.form
        payload = {
            "title": form.title.strip(),
            "description": blank_to_none(form.description),
            "priority": form.priority.value,
            "assignedUserId": blank_to_none(form.assignedUserId),
            "slaDeadline": iso_utc(form.slaDeadline) if form.slaDeadline else None,
            "productName": blank_to_none(form.productName) or form.brandModel.strip(),
            "issueCategory": resolve_issue_category(form.issueCategory, form.otherCategoryDetails),
            "repairType": "inventory",
            "status": RepairStatus.NEW.value,
        }
        return {k: v for k, v in payload.items() if v is not None}


def wizard_for_step(kind: str, step: int, raw: dict) -> _Wizard:
    """Rebuild a wizard at `step` from the form data the UI has collected"""
    if kind == "inventory":
        return InventoryRepairWizard(validate_form(InventoryRepairForm, raw), step)
    if kind == "customer":
        return RepairWizard(validate_form(RepairWizardForm, raw), step)
    raise ValidationFailed("Onbekende wizard", kind)
