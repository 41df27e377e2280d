# Overview: Pytest coverage for payload validation (checkout, edit, promotions).

from datetime import date
from decimal import Decimal

import pytest

from salonpos.validation import (
    UNSET,
    LineItem,
    ValidationError,
    is_set,
    validate_promotion_payload,
    validate_sale_create,
    validate_sale_update,
)

from conftest import sale_payload


class TestValidationError:

    def test_field_and_message(self):
        err = ValidationError("bad", field="products")
        assert err.errors == {"products": "bad"}
        assert err.field == "products"
        assert err.message == "bad"

    def test_message_without_field(self):
        assert ValidationError("oops").errors == {"non_field_errors": "oops"}


class TestSaleCreate:

    def test_defaults(self):
        draft = validate_sale_create({
            "customer_name": " Awa ",
            "customer_phone": "770000001",
            "sale_date": "2025-01-13",
        })

        assert draft.customer_name == "Awa"
        assert draft.sale_date == date(2025, 1, 13)
        assert draft.payment_method == "caisse"
        assert draft.status == "En attente"
        assert draft.products == []
        assert draft.services == []
        assert draft.promotion_id is None

    def test_lines(self):
        draft = validate_sale_create(sale_payload(
            products=[{"product_id": "3", "quantity": 2}],
            services=[{"service_id": 4}, {"service_id": 5, "quantity": 3}],
            promotion_id="",
            hairdresser_id="7",
        ))

        assert draft.products == [LineItem(3, 2)]
        assert draft.services == [LineItem(4, 1), LineItem(5, 3)]
        assert draft.promotion_id is None
        assert draft.hairdresser_id == 7

    def test_missing_required_fields(self):
        with pytest.raises(ValidationError) as exc:
            validate_sale_create({"customer_name": "Awa"})

        assert set(exc.value.errors) == {"customer_phone", "sale_date"}

    def test_product_quantity_is_required(self):
        with pytest.raises(ValidationError) as exc:
            validate_sale_create(sale_payload(products=[{"product_id": 1}]))

        assert exc.value.field == "products"

    @pytest.mark.parametrize("quantity", [0, -1, "1.5", "abc", True])
    def test_bad_quantity(self, quantity):
        with pytest.raises(ValidationError) as exc:
            validate_sale_create(sale_payload(products=[{"product_id": 1, "quantity": quantity}]))

        assert "products" in exc.value.errors or "quantity" in exc.value.errors

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_sale_create(sale_payload(total_amount="1"))

        assert exc.value.field == "total_amount"

    def test_bad_choices_and_date(self):
        with pytest.raises(ValidationError) as exc:
            validate_sale_create(sale_payload(payment_method="cheque", status="Paid", sale_date="13/01/2025"))

        assert set(exc.value.errors) == {"payment_method", "status", "sale_date"}

    def test_phone_length(self):
        with pytest.raises(ValidationError) as exc:
            validate_sale_create(sale_payload(customer_phone="1" * 31))

        assert exc.value.field == "customer_phone"

    def test_not_a_dict(self):
        with pytest.raises(ValidationError):
            validate_sale_create(["nope"])


class TestSaleUpdate:

    def test_absent_fields_are_unset(self):
        patch = validate_sale_update({"customer_name": "Awa"})

        assert patch.customer_name == "Awa"
        assert patch.products is UNSET
        assert patch.promotion_id is UNSET
        assert not is_set(patch.services)

    def test_null_promotion_is_set(self):
        patch = validate_sale_update({"promotion_id": None, "products": []})

        assert is_set(patch.promotion_id)
        assert patch.promotion_id is None
        assert patch.products == []

    def test_empty_payload(self):
        patch = validate_sale_update(None)
        assert all(not is_set(getattr(patch, name)) for name in ("customer_name", "products", "services"))

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_sale_update({"customer_name": ""})

        assert exc.value.field == "customer_name"


class TestPromotionPayload:

    def test_create_normalizes(self):
        patch = validate_promotion_payload({
            "name": "Lundi",
            "percentage": "12.5",
            "days_of_week": ["1", 3, 1],
            "active": "true",
            "starts_at": "2025-01-01",
            "ends_at": "",
        }, partial=False)

        assert patch["percentage"] == Decimal("12.5")
        assert patch["days_of_week"] == [1, 3]
        assert patch["active"] is True
        assert patch["starts_at"] == date(2025, 1, 1)
        assert patch["ends_at"] is None

    def test_name_required_on_create(self):
        with pytest.raises(ValidationError) as exc:
            validate_promotion_payload({"percentage": 10}, partial=False)

        assert exc.value.field == "name"

    def test_partial_skips_name(self):
        assert validate_promotion_payload({"amount": "500"}, partial=True) == {"amount": Decimal("500")}

    def test_percentage_range(self):
        with pytest.raises(ValidationError) as exc:
            validate_promotion_payload({"percentage": 101}, partial=True)

        assert exc.value.field == "percentage"

    def test_negative_amount(self):
        with pytest.raises(ValidationError) as exc:
            validate_promotion_payload({"amount": -5}, partial=True)

        assert exc.value.field == "amount"

    def test_weekday_range(self):
        with pytest.raises(ValidationError) as exc:
            validate_promotion_payload({"days_of_week": [0, 7]}, partial=True)

        assert exc.value.field == "days_of_week"
