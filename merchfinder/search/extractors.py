"""Pure text predicates and extractors applied to marketplace search hits.

Every function here takes plain strings, touches no network and keeps no
state. The input is usually the title, snippet and page content of one hit
joined by spaces.
"""

import logging
import re
from typing import Optional, Tuple

from ..constants import MERCARI_DOMAIN, PRICE_MAX, PRICE_MIN, SURUGAYA_DOMAIN
from ..models import Platform

logger = logging.getLogger(__name__)

_MERCARI_ITEM_URL = re.compile(r"jp\.mercari\.com/item/m[a-zA-Z0-9]+")
_SURUGAYA_PRODUCT_URL = re.compile(r"suruga-ya\.jp/product/detail/[0-9]+")

_YEN_PREFIXED = re.compile(r"[¥￥]\s?(\d[\d,]*)")
_YEN_SUFFIXED = re.compile(r"(\d[\d,]*)\s*円")
# A bare number that ends at whitespace, a yen sign or the end of the text and
# does not continue an ASCII token such as an item id or a URL path.
_BARE_NUMBER = re.compile(r"(?<![A-Za-z0-9./#_-])(\d[\d,]*)(?=[\s円¥￥]|$)")

# Longer phrases first where a shorter entry is a substring of them.
CONDITION_PATTERNS: Tuple[Tuple[str, str], ...] = (
    ("ほぼ未使用", "Like New"),
    ("ほぼ新品", "Like New"),
    ("未開封", "Unopened"),
    ("未使用", "New"),
    ("あたらしい", "New"),
    ("新品", "New"),
    ("新しい", "New"),
    ("開封", "Opened"),
    ("美品", "Good"),
    ("中古", "Used"),
    ("傷あり", "Used - With Damage"),
    ("ジャンク", "Junk"),
    ("USED", "Used"),
    ("NEW", "New"),
)

SOLD_OUT_MARKERS: Tuple[str, ...] = (
    "売り切れ",
    "売切れ",
    "終了",
    "完売",
    "SOLD OUT",
    "在庫なし",
    "このアイテムは削除されました",
)


def is_valid_product_url(url: str) -> bool:
    """True only for a single-item page on one of the supported marketplaces."""
    if MERCARI_DOMAIN in url:
        valid = bool(_MERCARI_ITEM_URL.search(url))
        if not valid:
            logger.debug("Rejected Mercari URL (not an item page): %s", url)
        return valid
    if SURUGAYA_DOMAIN in url:
        valid = bool(_SURUGAYA_PRODUCT_URL.search(url))
        if not valid:
            logger.debug("Rejected Suruga-Ya URL (not a product page): %s", url)
        return valid
    logger.debug("Rejected URL outside supported marketplaces: %s", url)
    return False


def platform_from_url(url: str) -> Optional[Platform]:
    if MERCARI_DOMAIN in url:
        return Platform.MERCARI
    if SURUGAYA_DOMAIN in url:
        return Platform.SURUGAYA
    return None


def _digits(run: str) -> str:
    return run.rstrip(",")


def extract_price(text: str) -> Optional[str]:
    match = _YEN_PREFIXED.search(text)
    if match and _digits(match.group(1)):
        return f"¥{_digits(match.group(1))}"

    match = _YEN_SUFFIXED.search(text)
    if match and _digits(match.group(1)):
        return f"{_digits(match.group(1))}円"

    for match in _BARE_NUMBER.finditer(text):
        run = _digits(match.group(1))
        try:
            value = int(run.replace(",", ""))
        except ValueError:
            continue
        if PRICE_MIN < value < PRICE_MAX:
            return f"¥{run}"
    return None


def extract_condition(text: str) -> Optional[str]:
    for phrase, label in CONDITION_PATTERNS:
        if phrase in text:
            return label
    return None


def check_availability(text: str) -> bool:
    upper = text.upper()
    return not any(marker in upper for marker in SOLD_OUT_MARKERS)
