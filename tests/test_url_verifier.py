import pytest

from conftest import verification_payload
from contracts.errors import ReasoningModelError
from contracts.models import ProductResult, UrlVerificationList
from integrations.reasoning_model import ModelTool
from services.url_verifier import UrlVerifier, apply_verifications


def _product(n, image_url=None):
    return ProductResult(id=f"p{n}", name=f"Product {n}", retailer="Acme",
                         url=f"https://acme.test/{n}", price=100, image_url=image_url)


@pytest.fixture
def products():
    return [_product(1, image_url="https://img.test/1.jpg"), _product(2), _product(3)]


@pytest.mark.asyncio
async def test_invalid_and_unmatched_urls_are_dropped(model, products):
    payload = verification_payload("https://acme.test/1")
    payload["results"].append({"url": "https://acme.test/2", "is_valid": False, "reason": "out of stock"})
    model.queue(UrlVerificationList, payload)

    verified = await UrlVerifier(model, enabled=True).verify(products)

    assert [p.id for p in verified] == ["p1"]
    assert verified[0].available_sizes == ["M"]


@pytest.mark.asyncio
async def test_verified_image_replaces_search_image(model, products):
    payload = verification_payload("https://acme.test/1", "https://acme.test/2")
    payload["results"][1]["image_url"] = "https://img.test/hero-2.jpg"
    model.queue(UrlVerificationList, payload)

    verified = await UrlVerifier(model, enabled=True).verify(products)

    assert verified[0].image_url == "https://img.test/1.jpg"
    assert verified[1].image_url == "https://img.test/hero-2.jpg"


@pytest.mark.asyncio
@pytest.mark.parametrize("failure", [ReasoningModelError("timeout"), RuntimeError("boom")])
async def test_failure_returns_products_unchanged(model, products, failure):
    model.queue(UrlVerificationList, failure)

    assert await UrlVerifier(model, enabled=True).verify(products) == products


@pytest.mark.asyncio
async def test_one_fetch_call_per_batch(model, products):
    model.queue(UrlVerificationList, verification_payload(*(p.url for p in products)))

    verified = await UrlVerifier(model, enabled=True).verify(products)

    assert len(verified) == 3
    [call] = model.calls
    assert call["tools"] == frozenset({ModelTool.WEB_FETCH})
    assert "3. https://acme.test/3" in call["prompt"]


@pytest.mark.asyncio
async def test_empty_batch_and_disabled_skip_the_model(model, products):
    assert await UrlVerifier(model, enabled=True).verify([]) == []
    assert await UrlVerifier(model, enabled=False).verify(products) == products
    assert model.calls == []


def test_apply_verifications_keeps_input_order(products):
    records = UrlVerificationList.model_validate(
        verification_payload("https://acme.test/3", "https://acme.test/1")
    ).results

    assert [p.id for p in apply_verifications(products, records)] == ["p1", "p3"]
