# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

import re

# Compatibility table shared by ingestion (URL -> identifier) and synthesis (identifier -> URL).
SYSTEM_URLS = {
    "NAMASTE": "http://namaste.gov.in",
    "ICD-11 TM2": "http://id.who.int/icd/entity/148929940",
    "ICD-11 BIOMEDICINE": "http://id.who.int/icd/entity/12345",
    "WHO AYURVEDA": "http://who.int/ayurveda",
}

URL_SYSTEMS = {url: system for system, url in SYSTEM_URLS.items()}

FALLBACK_URL_BASE = "http://terminology.system"


def system_from_url(url: str) -> str:
    """
    Resolves a coding-system URL to a system identifier.

    Unknown URLs fall back to their last path segment, upper-cased with dashes as
    spaces. This is a heuristic and two URLs may collide.
    """
    if url in URL_SYSTEMS:
        return URL_SYSTEMS[url]
    return url.split("/")[-1].upper().replace("-", " ")


def url_for_system(system: str) -> str:
    """
    Derives a coding-system URL for a system identifier.

    Unknown systems become `<FALLBACK_URL_BASE>/<lowercased, whitespace as dashes>`.
    """
    if system in SYSTEM_URLS:
        return SYSTEM_URLS[system]
    slug = re.sub(r"\s+", "-", system.lower())
    return f"{FALLBACK_URL_BASE}/{slug}"
