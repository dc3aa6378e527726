"""
Project ledger codec (``ledger_kernel.domain.codec``).

Responsibility
--------------
Converts the ``ProjectLedger`` aggregate to and from the plain-dict payload
held by a project store.  Payload keys use the camelCase vocabulary of the
project application (``contractQuantity``, ``uptoDateQuantity`` ...);
Decimals travel as strings so no binary float ever touches a stored amount.

Invariants enforced
-------------------
* ``ledger_from_dict(ledger_to_dict(x)) == x`` for every aggregate.
* ``totalImpact`` is written for readers but ignored on load; it is always
  recomputed from the staged items.

Failure modes
-------------
* ``KeyError`` when a required key is missing from a payload.
* ``ValueError`` from record constructors on inconsistent payloads (e.g.
  ``revisedQuantity`` that does not equal contract + variation).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ledger_kernel.domain.billing import (
    BillItem,
    ContractBill,
    IPCSummary,
    StatutoryRates,
    SubcontractorBill,
)
from ledger_kernel.domain.boq import BOQItem, BOQRegister
from ledger_kernel.domain.project import ProjectLedger
from ledger_kernel.domain.variation import VariationItem, VariationOrder

PAYLOAD_VERSION = 1


def _dec(value: Any) -> Decimal:
    return Decimal(str(value))


def _date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


# ---------------------------------------------------------------------------
# BOQ
# ---------------------------------------------------------------------------


def boq_item_to_dict(item: BOQItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "itemNo": item.item_no,
        "description": item.description,
        "unit": item.unit,
        "contractQuantity": str(item.contract_quantity),
        "rate": str(item.rate),
        "variationQuantity": str(item.variation_quantity),
        "revisedQuantity": str(item.revised_quantity),
        "completedQuantity": str(item.completed_quantity),
        "category": item.category,
        "location": item.location,
    }


def boq_item_from_dict(data: dict[str, Any]) -> BOQItem:
    return BOQItem(
        id=data["id"],
        item_no=data["itemNo"],
        description=data.get("description", ""),
        unit=data.get("unit", ""),
        contract_quantity=_dec(data["contractQuantity"]),
        rate=_dec(data["rate"]),
        variation_quantity=_dec(data.get("variationQuantity", "0")),
        revised_quantity=_dec(data["revisedQuantity"]) if "revisedQuantity" in data else None,
        completed_quantity=_dec(data.get("completedQuantity", "0")),
        category=data.get("category", "General"),
        location=data.get("location", ""),
    )


# ---------------------------------------------------------------------------
# Variation orders
# ---------------------------------------------------------------------------


def variation_to_dict(vo: VariationOrder) -> dict[str, Any]:
    return {
        "id": vo.id,
        "voNumber": vo.vo_number,
        "title": vo.title,
        "reason": vo.reason,
        "date": vo.date.isoformat(),
        "status": vo.status.value,
        "totalImpact": str(vo.total_impact),
        "approvedAt": vo.approved_at.isoformat() if vo.approved_at else None,
        "approvedBy": vo.approved_by,
        "items": [
            {
                "id": i.id,
                "boqItemId": i.boq_item_id,
                "isNewItem": i.is_new_item,
                "description": i.description,
                "unit": i.unit,
                "quantityDelta": str(i.quantity_delta),
                "rate": str(i.rate),
            }
            for i in vo.items
        ],
    }


def variation_from_dict(data: dict[str, Any]) -> VariationOrder:
    items = tuple(
        VariationItem(
            id=i["id"],
            boq_item_id=i.get("boqItemId"),
            is_new_item=bool(i.get("isNewItem", False)),
            description=i.get("description", ""),
            unit=i.get("unit", ""),
            quantity_delta=_dec(i["quantityDelta"]),
            rate=_dec(i["rate"]),
        )
        for i in data.get("items", [])
    )
    return VariationOrder(
        id=data["id"],
        vo_number=data["voNumber"],
        title=data.get("title", ""),
        reason=data.get("reason", ""),
        date=_date(data["date"]),
        items=items,
        status=data.get("status", "Draft"),
        approved_at=_datetime(data.get("approvedAt")),
        approved_by=data.get("approvedBy"),
    )


# ---------------------------------------------------------------------------
# Bills
# ---------------------------------------------------------------------------

_BILL_ITEM_FIELDS = (
    ("boq_item_id", "boqItemId"),
    ("item_no", "itemNo"),
    ("description", "description"),
    ("unit", "unit"),
)
_BILL_ITEM_DECIMALS = (
    ("contract_quantity", "contractQuantity"),
    ("rate", "rate"),
    ("previous_quantity", "previousQuantity"),
    ("current_quantity", "currentQuantity"),
    ("upto_date_quantity", "uptoDateQuantity"),
    ("previous_amount", "previousAmount"),
    ("current_amount", "currentAmount"),
    ("upto_date_amount", "uptoDateAmount"),
)
_SUMMARY_FIELDS = (
    ("bill_amount_gross", "billAmountGross"),
    ("cpa_amount", "cpaAmount"),
    ("bill_amount_with_cpa", "billAmountWithCPA"),
    ("bill_amount_without_ps", "billAmountWithoutPS"),
    ("vat_amount", "vatAmount"),
    ("total_bill_with_vat", "totalBillWithVat"),
    ("retention_amount", "retentionAmount"),
    ("advance_income_tax", "advanceIncomeTax"),
    ("contractor_dev_fund", "contractorDevFund"),
    ("deductable_vat", "deductableVat"),
    ("advance_payment_deduction", "advancePaymentDeduction"),
    ("liquidated_damages", "liquidatedDamages"),
    ("total_deductions", "totalDeductions"),
    ("total_amount_payable", "totalAmountPayable"),
)
_RATE_FIELDS = (
    ("vat", "vat"),
    ("retention", "retention"),
    ("advance_income_tax", "advanceIncomeTax"),
    ("contractor_dev_fund", "contractorDevFund"),
    ("deductible_vat_share", "deductibleVatShare"),
)


def bill_item_to_dict(item: BillItem) -> dict[str, Any]:
    data: dict[str, Any] = {key: getattr(item, attr) for attr, key in _BILL_ITEM_FIELDS}
    data.update({key: str(getattr(item, attr)) for attr, key in _BILL_ITEM_DECIMALS})
    return data


def bill_item_from_dict(data: dict[str, Any]) -> BillItem:
    kwargs: dict[str, Any] = {attr: data.get(key, "") for attr, key in _BILL_ITEM_FIELDS}
    kwargs["boq_item_id"] = data["boqItemId"]
    kwargs.update({attr: _dec(data[key]) for attr, key in _BILL_ITEM_DECIMALS})
    return BillItem(**kwargs)


def summary_to_dict(summary: IPCSummary) -> dict[str, str]:
    return {key: str(getattr(summary, attr)) for attr, key in _SUMMARY_FIELDS}


def summary_from_dict(data: dict[str, Any]) -> IPCSummary:
    return IPCSummary(**{attr: _dec(data[key]) for attr, key in _SUMMARY_FIELDS})


def rates_to_dict(rates: StatutoryRates) -> dict[str, str]:
    return {key: str(getattr(rates, attr)) for attr, key in _RATE_FIELDS}


def rates_from_dict(data: dict[str, Any]) -> StatutoryRates:
    return StatutoryRates(**{attr: _dec(data[key]) for attr, key in _RATE_FIELDS})


def contract_bill_to_dict(bill: ContractBill) -> dict[str, Any]:
    return {
        "id": bill.id,
        "billNumber": bill.bill_number,
        "orderOfBill": bill.order_of_bill,
        "date": bill.date.isoformat(),
        "dateOfMeasurement": bill.date_of_measurement.isoformat(),
        "items": [bill_item_to_dict(i) for i in bill.items],
        "provisionalSum": str(bill.provisional_sum),
        "cpaAmount": str(bill.cpa_amount),
        "advancePaymentDeduction": str(bill.advance_payment_deduction),
        "liquidatedDamages": str(bill.liquidated_damages),
        "summary": summary_to_dict(bill.summary),
        "rates": rates_to_dict(bill.rates),
        "summaryHash": bill.summary_hash,
        "sourceSheetIds": list(bill.source_sheet_ids),
        "status": bill.status.value,
    }


def contract_bill_from_dict(data: dict[str, Any]) -> ContractBill:
    return ContractBill(
        id=data["id"],
        bill_number=data["billNumber"],
        order_of_bill=int(data["orderOfBill"]),
        date=_date(data["date"]),
        date_of_measurement=_date(data["dateOfMeasurement"]),
        items=tuple(bill_item_from_dict(i) for i in data.get("items", [])),
        provisional_sum=_dec(data.get("provisionalSum", "0")),
        cpa_amount=_dec(data.get("cpaAmount", "0")),
        advance_payment_deduction=_dec(data.get("advancePaymentDeduction", "0")),
        liquidated_damages=_dec(data.get("liquidatedDamages", "0")),
        summary=summary_from_dict(data["summary"]),
        rates=rates_from_dict(data["rates"]),
        summary_hash=data["summaryHash"],
        source_sheet_ids=tuple(data.get("sourceSheetIds", ())),
        status=data.get("status", "Draft"),
    )


def subcontractor_bill_to_dict(bill: SubcontractorBill) -> dict[str, Any]:
    return {
        "id": bill.id,
        "billNumber": bill.bill_number,
        "orderOfBill": bill.order_of_bill,
        "subcontractorId": bill.subcontractor_id,
        "date": bill.date.isoformat(),
        "periodFrom": bill.period_from.isoformat(),
        "periodTo": bill.period_to.isoformat(),
        "items": [bill_item_to_dict(i) for i in bill.items],
        "grossAmount": str(bill.gross_amount),
        "retentionPercent": str(bill.retention_percent),
        "retentionAmount": str(bill.retention_amount),
        "netAmount": str(bill.net_amount),
        "sourceWorkLogIds": list(bill.source_work_log_ids),
        "status": bill.status.value,
    }


def subcontractor_bill_from_dict(data: dict[str, Any]) -> SubcontractorBill:
    return SubcontractorBill(
        id=data["id"],
        bill_number=data["billNumber"],
        order_of_bill=int(data["orderOfBill"]),
        subcontractor_id=data["subcontractorId"],
        date=_date(data["date"]),
        period_from=_date(data["periodFrom"]),
        period_to=_date(data["periodTo"]),
        items=tuple(bill_item_from_dict(i) for i in data.get("items", [])),
        gross_amount=_dec(data["grossAmount"]),
        retention_percent=_dec(data["retentionPercent"]),
        retention_amount=_dec(data["retentionAmount"]),
        net_amount=_dec(data["netAmount"]),
        source_work_log_ids=tuple(data.get("sourceWorkLogIds", ())),
        status=data.get("status", "Draft"),
    )


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


def ledger_to_dict(ledger: ProjectLedger) -> dict[str, Any]:
    """Serialize the aggregate; ``revision`` is left to the store."""
    return {
        "payloadVersion": PAYLOAD_VERSION,
        "projectId": ledger.project_id,
        "boq": [boq_item_to_dict(i) for i in ledger.register],
        "variationOrders": [variation_to_dict(v) for v in ledger.variation_orders],
        "contractBills": [contract_bill_to_dict(b) for b in ledger.contract_bills],
        "subcontractorBills": [subcontractor_bill_to_dict(b) for b in ledger.subcontractor_bills],
        "sequences": {
            "vo": ledger.vo_sequence,
            "ipc": ledger.ipc_sequence,
            "scb": ledger.scb_sequence,
        },
    }


def ledger_from_dict(data: dict[str, Any], revision: int = 0) -> ProjectLedger:
    sequences = data.get("sequences", {})
    return ProjectLedger(
        project_id=data["projectId"],
        register=BOQRegister(tuple(boq_item_from_dict(i) for i in data.get("boq", []))),
        variation_orders=tuple(variation_from_dict(v) for v in data.get("variationOrders", [])),
        contract_bills=tuple(contract_bill_from_dict(b) for b in data.get("contractBills", [])),
        subcontractor_bills=tuple(
            subcontractor_bill_from_dict(b) for b in data.get("subcontractorBills", [])
        ),
        vo_sequence=int(sequences.get("vo", 0)),
        ipc_sequence=int(sequences.get("ipc", 0)),
        scb_sequence=int(sequences.get("scb", 0)),
        revision=revision,
    )
