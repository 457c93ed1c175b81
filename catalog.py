from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from gateway import Gateway
from models import Program, University

SORT_OPTIONS = ["name", "tuition-low", "tuition-high", "deadline"]
STUDY_LEVELS = ["Bachelor", "Master", "PhD"]
CURRENCY_SYMBOLS = {"USD": "$", "GBP": "£", "EUR": "€", "CHF": "CHF "}


@dataclass
class ProgramListing:
    program: Program
    university: Optional[University]

    @property
    def university_name(self) -> str:
        return self.university.name if self.university else "-"

    @property
    def country(self) -> str:
        return self.university.country if self.university else "-"


def format_tuition(amount: float | None, currency: str | None) -> str:
    if amount is None:
        return "-"
    symbol = CURRENCY_SYMBOLS.get((currency or "").upper(), f"{currency or ''} ".lstrip())
    return f"{symbol}{amount:,.0f}"


def list_universities(gateway: Gateway) -> list[University]:
    return gateway.fetch_all(University, order_by="name", is_active=True)


def filter_universities(universities: list[University], filters: dict[str, Any]) -> list[University]:
    query = str(filters.get("query") or "").strip().lower()
    country = filters.get("country") or "all"

    output: list[University] = []
    for uni in universities:
        if query:
            hay = " ".join([uni.name or "", uni.city or "", uni.description or ""]).lower()
            if query not in hay:
                continue
        if country != "all" and (uni.country or "").lower() != str(country).lower():
            continue
        output.append(uni)
    return output


def list_programs(gateway: Gateway) -> list[ProgramListing]:
    programs = gateway.fetch_all(Program, order_by="tuition_fee", is_active=True)
    universities = gateway.fetch_in(University, "id", list({p.university_id for p in programs}))
    by_id = {uni.id: uni for uni in universities}
    return [ProgramListing(program=p, university=by_id.get(p.university_id)) for p in programs]


def filter_programs(listings: list[ProgramListing], filters: dict[str, Any]) -> list[ProgramListing]:
    query = str(filters.get("query") or "").strip().lower()
    level = filters.get("study_level") or "all"
    country = filters.get("country") or "all"
    sort_by = filters.get("sort_by") or "name"

    output: list[ProgramListing] = []
    for item in listings:
        p = item.program
        if query:
            hay = " ".join([p.name or "", item.university_name, p.description or ""]).lower()
            if query not in hay:
                continue
        if level != "all" and (p.study_level or "").lower() != str(level).lower():
            continue
        if country != "all" and item.country.lower() != str(country).lower():
            continue
        output.append(item)

    if sort_by == "tuition-low":
        output.sort(key=lambda item: (item.program.tuition_fee is None, item.program.tuition_fee or 0))
    elif sort_by == "tuition-high":
        output.sort(key=lambda item: (item.program.tuition_fee is None, -(item.program.tuition_fee or 0)))
    elif sort_by == "deadline":
        output.sort(key=lambda item: item.program.application_deadline or date.max)
    else:
        output.sort(key=lambda item: item.program.name.lower())
    return output


def quick_search(gateway: Gateway, query: str, kind: str = "programs", limit: int = 6) -> list[Any]:
    """Home-page search box: matching programs or universities, capped at ``limit``."""
    if kind == "universities":
        return filter_universities(list_universities(gateway), {"query": query})[:limit]
    return filter_programs(list_programs(gateway), {"query": query})[:limit]


def catalog_countries(universities: list[University]) -> list[str]:
    return sorted({uni.country for uni in universities if uni.country})
