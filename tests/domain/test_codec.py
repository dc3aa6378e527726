"""
Tests for the stored payload format (ledger_kernel/domain/codec.py).
"""

import json
from decimal import Decimal

from ledger_kernel.domain.codec import boq_item_from_dict, ledger_from_dict, ledger_to_dict
from ledger_kernel.domain.project import ProjectLedger


class TestLedgerPayload:

    def test_payload_is_plain_json(self, register):
        payload = ledger_to_dict(ProjectLedger(project_id="P-1", register=register))

        assert payload["projectId"] == "P-1"
        assert payload["boq"][0]["contractQuantity"] == "100"
        assert json.loads(json.dumps(payload)) == payload

    def test_saved_bills_survive_storage(self, billing_service, store, project_id, bill_date, make_sheet):
        draft = billing_service.draft_ipc(project_id, bill_date, bill_date, [make_sheet("ms-1", ("boq-3", "0.37"))])
        bill = billing_service.save_ipc(project_id, draft)

        restored = ledger_from_dict(ledger_to_dict(store.load(project_id)))

        assert restored.get_contract_bill(bill.id) == bill
        assert restored.get_contract_bill(bill.id).summary.bill_amount_gross == Decimal("37.00")


class TestLegacyRows:

    def test_missing_optional_fields_default(self):
        item = boq_item_from_dict({
            "id": "b-1", "itemNo": "1", "contractQuantity": "10", "rate": "5",
        })

        assert item.variation_quantity == Decimal("0")
        assert item.revised_quantity == Decimal("10")
        assert item.completed_quantity == Decimal("0")
        assert item.category == "General"
