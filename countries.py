from __future__ import annotations

COUNTRIES: list[tuple[str, str]] = [
    ("AE", "United Arab Emirates"),
    ("AU", "Australia"),
    ("AT", "Austria"),
    ("AZ", "Azerbaijan"),
    ("BD", "Bangladesh"),
    ("BE", "Belgium"),
    ("BR", "Brazil"),
    ("CA", "Canada"),
    ("CH", "Switzerland"),
    ("CN", "China"),
    ("CY", "Cyprus"),
    ("DE", "Germany"),
    ("DK", "Denmark"),
    ("EG", "Egypt"),
    ("ES", "Spain"),
    ("FI", "Finland"),
    ("FR", "France"),
    ("GB", "United Kingdom"),
    ("GE", "Georgia"),
    ("GR", "Greece"),
    ("ID", "Indonesia"),
    ("IE", "Ireland"),
    ("IN", "India"),
    ("IQ", "Iraq"),
    ("IR", "Iran"),
    ("IT", "Italy"),
    ("JO", "Jordan"),
    ("JP", "Japan"),
    ("KR", "South Korea"),
    ("KZ", "Kazakhstan"),
    ("LB", "Lebanon"),
    ("MA", "Morocco"),
    ("MY", "Malaysia"),
    ("NG", "Nigeria"),
    ("NL", "Netherlands"),
    ("NO", "Norway"),
    ("NZ", "New Zealand"),
    ("PK", "Pakistan"),
    ("PL", "Poland"),
    ("PT", "Portugal"),
    ("QA", "Qatar"),
    ("RU", "Russia"),
    ("SA", "Saudi Arabia"),
    ("SE", "Sweden"),
    ("SG", "Singapore"),
    ("SY", "Syria"),
    ("TM", "Turkmenistan"),
    ("TR", "Turkey"),
    ("UA", "Ukraine"),
    ("US", "United States"),
    ("UZ", "Uzbekistan"),
]

# Dial codes offered in the phone step; the wizard defaults to +90.
COUNTRY_CODES: list[tuple[str, str]] = [
    ("+90", "Turkey"),
    ("+1", "United States / Canada"),
    ("+44", "United Kingdom"),
    ("+49", "Germany"),
    ("+33", "France"),
    ("+41", "Switzerland"),
    ("+31", "Netherlands"),
    ("+61", "Australia"),
    ("+60", "Malaysia"),
    ("+65", "Singapore"),
    ("+91", "India"),
    ("+92", "Pakistan"),
    ("+994", "Azerbaijan"),
    ("+7", "Russia / Kazakhstan"),
    ("+971", "United Arab Emirates"),
    ("+966", "Saudi Arabia"),
    ("+20", "Egypt"),
    ("+62", "Indonesia"),
    ("+86", "China"),
    ("+81", "Japan"),
]

COUNTRY_NAMES = dict(COUNTRIES)


def country_name(code: str | None) -> str:
    if not code:
        return "-"
    return COUNTRY_NAMES.get(code.upper(), code)
