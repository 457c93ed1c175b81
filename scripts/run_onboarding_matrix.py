from __future__ import annotations

import sys
from datetime import date
from pathlib import Path
from typing import Any

from sqlalchemy import select

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db import db_session
from forms import REGISTRY_DOCUMENT_TYPE, UploadedFile, personal_rules, validate
from models import DocumentType

TODAY = date(2026, 6, 15)
REGISTRY_SCAN = UploadedFile("nufus.pdf", b"%PDF-1.4 scan", "application/pdf")


def registry_type_present() -> bool:
    with db_session() as db:
        return db.scalar(select(DocumentType).where(DocumentType.name == REGISTRY_DOCUMENT_TYPE)) is not None


def base_values() -> dict[str, Any]:
    return {
        "date_of_birth": date(2000, 1, 1),
        "nationality": "US",
        "has_dual_nationality": False,
        "second_nationality": None,
        "email": "student@example.com",
        "country_code": "+1",
        "phone_number": "555 123 4567",
        "passport_number": "X1234567",
        "street": "1 Main St",
        "city": "Boston",
        "state": "MA",
        "postal_code": "02110",
        "country": "US",
    }


def scenario_inputs() -> list[dict[str, Any]]:
    return [
        {"name": "Adult single nationality", "values": {}, "files": {}},
        {"name": "Turns 16 today", "values": {"date_of_birth": date(2010, 6, 15)}, "files": {}},
        {"name": "Turns 16 tomorrow", "values": {"date_of_birth": date(2010, 6, 16)}, "files": {}},
        {"name": "Exactly 100", "values": {"date_of_birth": date(1926, 6, 15)}, "files": {}},
        {"name": "Aged 101", "values": {"date_of_birth": date(1925, 6, 14)}, "files": {}},
        {"name": "Born in the future", "values": {"date_of_birth": date(2027, 1, 1)}, "files": {}},
        {
            "name": "Dual US/TR without registry document",
            "values": {"has_dual_nationality": True, "second_nationality": "TR"},
            "files": {},
        },
        {
            "name": "Dual US/TR with registry document",
            "values": {"has_dual_nationality": True, "second_nationality": "TR"},
            "files": {"nufus": REGISTRY_SCAN},
        },
        {
            "name": "Dual with same nationality twice",
            "values": {"has_dual_nationality": True, "second_nationality": "US"},
            "files": {},
        },
        {"name": "Dual flag without second nationality", "values": {"has_dual_nationality": True}, "files": {}},
        {"name": "Broken contact details", "values": {"email": "not-an-email", "country_code": "90", "phone_number": ""}, "files": {}},
    ]


def main() -> None:
    print(f"Registry document type seeded: {'yes' if registry_type_present() else 'NO'}")
    for scenario in scenario_inputs():
        values = {**base_values(), **scenario["values"]}
        errors = validate(personal_rules(values), values, scenario["files"], TODAY)

        print(f"\n=== {scenario['name']} ===")
        if not errors:
            print("Outcome: ACCEPTED")
        else:
            print("Outcome: REJECTED")
            for field, message in errors.items():
                print(f"- {field}: {message}")


if __name__ == "__main__":
    main()
