from datetime import timedelta

import pytest

from ferreteria.errors import CustomerNotFound, PaymentExceedsPending, ValidationError
from ferreteria.models import CreditAccountEntry, Sale
from ferreteria.services import credit_service, customer_service, sales_service
from ferreteria.services.sales_service import SaleLineRequest, SaleRequest
from ferreteria.time_utils import utcnow


def test_new_customer_has_zero_balance(db_session, credit_customer):
    assert credit_service.get_balance(credit_customer.id) == 0
    assert credit_service.list_entries(credit_customer.id) == []


def test_balance_is_debt_plus_adjustment_minus_payment(db_session, credit_customer, admin):
    credit_service.register_debt(credit_customer.id, None, 30000, operator_id=admin.id)
    credit_service.register_payment(credit_customer.id, 12000, operator_id=admin.id)
    credit_service.register_adjustment(credit_customer.id, -500, operator_id=admin.id, description="Redondeo")
    credit_service.register_adjustment(credit_customer.id, 2000, operator_id=admin.id)

    assert credit_service.get_balance(credit_customer.id) == 30000 - 12000 - 500 + 2000


def test_debt_due_date_defaults_from_config(db_session, credit_customer):
    before = utcnow()
    entry = credit_service.register_debt(credit_customer.id, None, 1000)
    assert entry.entry_type == CreditAccountEntry.DEBT
    assert entry.due_at >= before + timedelta(days=30) - timedelta(seconds=5)
    assert entry.due_at <= utcnow() + timedelta(days=30)


def test_statement_has_running_balance(db_session, credit_customer):
    credit_service.register_debt(credit_customer.id, None, 5000)
    credit_service.register_payment(credit_customer.id, 2000)
    credit_service.register_debt(credit_customer.id, None, 1000)

    lines = credit_service.list_entries(credit_customer.id)
    assert [line.balance_cents for line in lines] == [5000, 3000, 4000]
    assert lines[-1].to_dict()["balance_cents"] == 4000


@pytest.mark.parametrize("amount", [0, -10])
def test_payment_and_debt_must_be_positive(db_session, credit_customer, amount):
    with pytest.raises(ValidationError):
        credit_service.register_payment(credit_customer.id, amount)
    with pytest.raises(ValidationError):
        credit_service.register_debt(credit_customer.id, None, amount)


def test_zero_adjustment_rejected(db_session, credit_customer):
    with pytest.raises(ValidationError):
        credit_service.register_adjustment(credit_customer.id, 0)


def test_unknown_customer(db_session):
    with pytest.raises(CustomerNotFound):
        credit_service.register_payment(4242, 100)


def test_effective_limit_and_available_credit(db_session, credit_customer, cash_customer):
    assert customer_service.effective_credit_limit(credit_customer) == 50000
    assert customer_service.effective_credit_limit(cash_customer) == 0
    assert customer_service.effective_credit_limit(None) == 0

    credit_service.register_debt(credit_customer.id, None, 45000)
    assert credit_service.available_credit(credit_customer) == 5000
    credit_service.register_adjustment(credit_customer.id, 10000)
    assert credit_service.available_credit(credit_customer) == 0


def test_create_customer_with_opening_balance(db_session, admin):
    customer = customer_service.create_customer(
        fields={"first_name": " Ana ", "last_name": "Lopez", "credit_enabled": True, "credit_limit_cents": 1000},
        initial_balance_cents=750,
        operator_id=admin.id,
    )
    assert customer.first_name == "Ana"
    assert credit_service.get_balance(customer.id) == 750
    (entry,) = [line.entry for line in credit_service.list_entries(customer.id)]
    assert entry.entry_type == CreditAccountEntry.ADJUSTMENT


def test_create_customer_requires_first_name(db_session):
    with pytest.raises(ValidationError):
        customer_service.create_customer(fields={"first_name": "  "})


def test_display_name(db_session, credit_customer):
    assert customer_service.display_name(credit_customer) == "Juan Perez"
    assert customer_service.display_name(None) == "CONSUMIDOR FINAL"


# =============================================================================
# PENDING DEBTS
# =============================================================================


def _credit_sale(operator, product, quantity, customer) -> int:
    request = SaleRequest(
        lines=[SaleLineRequest(product.id, quantity)],
        customer_id=customer.id,
        payment_type=Sale.PAYMENT_STORE_CREDIT,
    )
    return sales_service.create_sale(request, operator).sale.id


def test_pending_debts_follow_payments_applied_to_each_sale(db_session, seller, hammer, credit_customer):
    first = _credit_sale(seller, hammer, 2, credit_customer)
    second = _credit_sale(seller, hammer, 1, credit_customer)

    credit_service.register_payment(credit_customer.id, 5000, sale_id=first)
    credit_service.register_payment(credit_customer.id, 1000)

    pending = credit_service.pending_debts(credit_customer.id)
    assert [(p.debt.sale_id, p.pending_cents) for p in pending] == [(first, 15000), (second, 10000)]
    assert pending[0].invoice_number == "FACTURA_B 0001-00000001"
    assert pending[0].to_dict()["original_cents"] == 20000
    assert credit_service.get_balance(credit_customer.id) == 24000


def test_settled_sale_leaves_the_pending_list(db_session, seller, hammer, credit_customer):
    first = _credit_sale(seller, hammer, 2, credit_customer)
    second = _credit_sale(seller, hammer, 1, credit_customer)

    entry = credit_service.register_payment(credit_customer.id, 20000, sale_id=first)

    assert entry.description == f"Pago Venta #{first}"
    assert credit_service.pending_for_sale(credit_customer.id, first) == 0
    assert [p.debt.sale_id for p in credit_service.pending_debts(credit_customer.id)] == [second]


def test_past_due_debt_is_overdue(db_session, seller, hammer, credit_customer):
    first = _credit_sale(seller, hammer, 1, credit_customer)
    _credit_sale(seller, hammer, 1, credit_customer)
    debt = db_session.query(CreditAccountEntry).filter_by(sale_id=first).one()
    debt.due_at = utcnow() - timedelta(days=1)
    db_session.commit()

    pending = credit_service.pending_debts(credit_customer.id)
    assert [p.overdue for p in pending] == [True, False]
    assert pending[0].to_dict()["overdue"] is True


def test_payment_cannot_exceed_what_the_sale_still_owes(db_session, seller, hammer, credit_customer):
    sale_id = _credit_sale(seller, hammer, 2, credit_customer)
    credit_service.register_payment(credit_customer.id, 15000, sale_id=sale_id)

    with pytest.raises(PaymentExceedsPending) as exc:
        credit_service.register_payment(credit_customer.id, 5001, sale_id=sale_id)

    assert exc.value.details == {"sale_id": sale_id, "amount_cents": 5001, "pending_cents": 5000}
    assert credit_service.get_balance(credit_customer.id) == 5000
    assert db_session.query(CreditAccountEntry).filter_by(entry_type=CreditAccountEntry.PAYMENT).count() == 1


def test_payment_against_a_cash_sale_is_rejected(db_session, seller, hammer, credit_customer):
    request = SaleRequest(lines=[SaleLineRequest(hammer.id, 1)], customer_id=credit_customer.id)
    sale_id = sales_service.create_sale(request, seller).sale.id

    with pytest.raises(PaymentExceedsPending) as exc:
        credit_service.register_payment(credit_customer.id, 100, sale_id=sale_id)
    assert exc.value.details["pending_cents"] == 0
    assert credit_service.pending_debts(credit_customer.id) == []


def test_payment_for_unknown_customer_with_sale(db_session):
    with pytest.raises(CustomerNotFound):
        credit_service.register_payment(4242, 100, sale_id=1)
