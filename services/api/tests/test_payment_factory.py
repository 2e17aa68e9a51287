import pytest
from services.api.app.services.payment_base import GatewayConfigMissingError
from services.api.app.services.payment_factory import get_payment_gateway
from services.api.app.services.payment_mock import shared_mock_gateway


def test_get_payment_gateway_defaults_to_mock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STOREFRONT_PAYMENT_GATEWAY", raising=False)
    gateway = get_payment_gateway()
    assert gateway.name == "MOCK"
    assert gateway is shared_mock_gateway()


def test_get_payment_gateway_rejects_unknown(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STOREFRONT_PAYMENT_GATEWAY", "nope")
    with pytest.raises(ValueError, match="Unknown STOREFRONT_PAYMENT_GATEWAY"):
        get_payment_gateway()


def test_stripe_gateway_requires_secret_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STOREFRONT_PAYMENT_GATEWAY", "stripe")
    monkeypatch.delenv("STRIPE_SECRET_KEY", raising=False)
    with pytest.raises(GatewayConfigMissingError, match="STRIPE_SECRET_KEY"):
        get_payment_gateway()
