"""Product image field, resolved once when a product is written.

Sellers send images as a bare URL, a JSON array of URLs, or (from older
bulk uploads) something that looks like an array but does not parse. The
shape is decided here so readers never sniff strings again.
"""

import json
from enum import Enum

import structlog
from protean.fields import String, Text

from storefront.domain import storefront

logger = structlog.get_logger(__name__)


class ImageKind(Enum):
    SINGLE = "single"
    LIST = "list"
    MALFORMED = "malformed"


@storefront.value_object(part_of="Product")
class ProductImages:
    kind: String(choices=ImageKind, required=True)
    urls: Text()  # JSON list of URLs that could be recovered
    raw: Text()

    @property
    def url_list(self) -> list[str]:
        return json.loads(self.urls) if self.urls else []

    @property
    def primary_url(self) -> str | None:
        urls = self.url_list
        return urls[0] if urls else None


def _looks_like_url(value) -> bool:
    return isinstance(value, str) and value.strip().lower().startswith(("http://", "https://", "/"))


def _salvage(raw: str) -> list[str]:
    tokens = raw.strip().strip("[]").split(",")
    cleaned = (t.strip().strip("'\"").strip() for t in tokens)
    return [t for t in cleaned if _looks_like_url(t)]


def resolve_images(raw) -> ProductImages | None:
    """Classify a raw image payload into a ``ProductImages`` value.

    ``None`` or blank input means the product has no images.
    """
    if raw is None:
        return None

    if isinstance(raw, list | tuple):
        urls = [u.strip() for u in raw if _looks_like_url(u)]
        kind = ImageKind.LIST if len(urls) == len(raw) else ImageKind.MALFORMED
        return ProductImages(kind=kind.value, urls=json.dumps(urls), raw=json.dumps(list(raw)))

    text = str(raw).strip()
    if not text:
        return None

    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list) and all(_looks_like_url(u) for u in parsed):
            return ProductImages(kind=ImageKind.LIST.value, urls=json.dumps([u.strip() for u in parsed]), raw=text)

        logger.warning("malformed_product_images", raw=text[:200])
        return ProductImages(kind=ImageKind.MALFORMED.value, urls=json.dumps(_salvage(text)), raw=text)

    # CDN transformation paths (w_100,h_100) put commas inside one URL
    if _looks_like_url(text) and not any(c.isspace() for c in text) and len(_salvage(text)) <= 1:
        return ProductImages(kind=ImageKind.SINGLE.value, urls=json.dumps([text]), raw=text)

    logger.warning("malformed_product_images", raw=text[:200])
    return ProductImages(kind=ImageKind.MALFORMED.value, urls=json.dumps(_salvage(text)), raw=text)
