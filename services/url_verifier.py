# services/url_verifier.py
"""
URL/Availability Verifier.

Re-checks a batch of candidate products with one page-fetch call to the
reasoning model. A product survives only if the model confirms its page loads
and the item is purchasable; survivors pick up the verified hero image and the
sizes currently in stock.

The pass fails open: if the verification call itself fails, the unverified
candidates are returned unchanged so the user still sees results.
"""
import logging
from typing import Dict, List, Optional

import config
from contracts.models import ProductResult, UrlVerification, UrlVerificationList
from infra.logging import log_event
from integrations.reasoning_model import ModelTool, ReasoningModel

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are a URL verification assistant that checks product pages and extracts product information."
)

VERIFICATION_PROMPT = """Use the web fetch tool to check each of these product URLs.

For each URL, determine:
1. Is the page valid? (loads successfully, not a 404 or error page)
2. Is the product CURRENTLY FOR SALE? (not "sold out", "out of stock", "item unavailable", "no longer available", etc.)
3. What is the main product image URL? (extract the primary/hero product image, preferably high resolution)
4. What sizes are currently available? (list only sizes that are in stock and can be purchased)

URLs to verify:
{urls}

For each URL, return one record in "results" with:
- url: the original URL you are checking, exactly as given
- is_valid: true ONLY if the product page exists AND the item is available for purchase
- reason: explanation of status (e.g., "available", "out of stock", "404 page not found")
- image_url: the main product image URL from the page (null if not found)
- available_sizes: array of available sizes (e.g., ["XS", "S", "M"] or ["6", "8", "10"])"""


def apply_verifications(products: List[ProductResult], verifications: List[UrlVerification]) -> List[ProductResult]:
    """
    Filter + enrich pass.

    - no record for a URL -> dropped (unverifiable)
    - record with is_valid false -> dropped
    - image_url replaced only when the record supplies one
    - available_sizes always taken from the record
    """
    by_url: Dict[str, UrlVerification] = {v.url: v for v in verifications}
    verified = []
    for product in products:
        record = by_url.get(product.url)
        if record is None or not record.is_valid:
            continue
        verified.append(product.model_copy(update={
            "image_url": record.image_url or product.image_url,
            "available_sizes": record.available_sizes,
        }))
    return verified


class UrlVerifier:

    def __init__(self, model: ReasoningModel, enabled: Optional[bool] = None):
        self.model = model
        self.enabled = config.ENABLE_LINK_VERIFICATION if enabled is None else enabled

    async def verify(self, products: List[ProductResult]) -> List[ProductResult]:
        """
        Verify a batch of products. Never raises (except on cancellation).

        Args:
            products: Unverified candidates from the search engine

        Returns:
            Verified and enriched products, or ``products`` unchanged when the
            verification call fails or verification is disabled
        """
        if not products or not self.enabled:
            return products

        urls = "\n".join(f"{i + 1}. {p.url}" for i, p in enumerate(products))
        logger.info(f"[Verifier] Verifying {len(products)} product URLs")

        try:
            response = await self.model.generate_structured(
                system_instruction=SYSTEM_INSTRUCTION,
                prompt=VERIFICATION_PROMPT.format(urls=urls),
                schema=UrlVerificationList,
                temperature=config.VERIFICATION_TEMPERATURE,
                tools=frozenset({ModelTool.WEB_FETCH}),
                max_tokens=config.VERIFICATION_MAX_TOKENS,
            )
        except Exception as e:
            # Fail open: showing unverified results beats showing none
            logger.warning(f"[Verifier] Verification failed, returning unverified products: {e}")
            log_event("verification_failed_open", count=len(products), error=type(e).__name__)
            return products

        verified = apply_verifications(products, response.results)
        log_event("verification_complete", checked=len(products), kept=len(verified))
        return verified
