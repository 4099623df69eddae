import re
from typing import Dict, Optional
from urllib.parse import quote

WORD_DELIMITERS = re.compile(r"(\s+|-)")


def capitalize_words(value: Optional[str]) -> str:
    """
    Upper-case the first letter of every word, leaving the rest untouched.

    Spaces and hyphens are delimiters; all-caps abbreviations ("ТОВ", "ДБЖ")
    are kept as they are.
    """
    if not value:
        return ""

    parts = []
    for part in WORD_DELIMITERS.split(value):
        if not part or WORD_DELIMITERS.fullmatch(part):
            parts.append(part)
        elif len(part) > 1 and part == part.upper():
            parts.append(part)
        else:
            parts.append(part[0].upper() + part[1:])
    return "".join(parts)


def clean_address_for_navigation(address: Optional[str]) -> str:
    """Strip building/letter abbreviations that confuse map search"""
    if not address:
        return ""
    cleaned = re.sub(r",?\s*літ\.\s*[«\"']?\w+[»\"']?", "", address, flags=re.IGNORECASE)
    cleaned = re.sub(r",?\s*корп\.\s*\w+", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r",?\s*буд\.\s*", " ", cleaned, flags=re.IGNORECASE)
    return cleaned.strip()


def navigation_links(coordinates: Optional[str], address: Optional[str]) -> Dict[str, str]:
    """Google Maps / Waze links for a site, preferring coordinates"""
    if coordinates:
        point = re.sub(r"\s", "", coordinates)
        return {
            "google": f"https://www.google.com/maps/search/?api=1&query={point}",
            "waze": f"https://waze.com/ul?ll={point}&navigate=yes",
        }
    if address:
        encoded = quote(clean_address_for_navigation(address))
        return {
            "google": f"https://www.google.com/maps/dir/?api=1&destination={encoded}",
            "waze": f"https://waze.com/ul?q={encoded}&navigate=yes",
        }
    return {}
