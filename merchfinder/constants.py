ALLOWED_MIME_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
DEFAULT_MIME_TYPE = "image/jpeg"

PLATFORM_MERCARI = "Mercari"
PLATFORM_SURUGAYA = "Suruga-Ya"

MERCARI_DOMAIN = "mercari.com"
SURUGAYA_DOMAIN = "suruga-ya.jp"

SITE_RESTRICTIONS = (
    "site:jp.mercari.com",
    "site:suruga-ya.jp",
)

# Bounds for the bare-number price heuristic; both exclusive.
PRICE_MIN = 100
PRICE_MAX = 10_000_000
