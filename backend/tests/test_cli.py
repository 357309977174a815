"""
CLI command tests using Flask's CLI runner.
"""

from ferreteria.models import Category, User
from ferreteria.services import stock_service


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    assert first.exit_code == 0, first.output
    assert "Created administrator" in first.output

    second = runner.invoke(args=["system", "init"])
    assert second.exit_code == 0, second.output
    assert "Using existing administrator" in second.output

    assert db_session.query(User).count() == 1
    assert db_session.query(Category).filter_by(name="General").count() == 1


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["users", "create", "--name", "Ana", "--email", "Ana@Ferreteria.local", "--role", "SELLER"])
    assert result.exit_code == 0, result.output

    duplicate = runner.invoke(args=["users", "create", "--name", "Ana", "--email", "ana@ferreteria.local"])
    assert duplicate.exit_code != 0

    listing = runner.invoke(args=["users", "list"])
    assert "ana@ferreteria.local" in listing.output
    assert "SELLER" in listing.output


def test_stock_ingress_and_critical(app, db_session, hammer, screws):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["stock", "ingress", str(hammer.id), "5", "--reason", "Compra"])
    assert result.exit_code == 0, result.output
    assert "on hand now 15" in result.output
    assert stock_service.get_quantity(hammer.id) == 15

    bad = runner.invoke(args=["stock", "ingress", str(hammer.id), "0"])
    assert bad.exit_code != 0
    assert "INVALID_QUANTITY" in bad.output

    critical = runner.invoke(args=["stock", "critical"])
    assert "TOR-050" in critical.output
    assert "MAR-001" not in critical.output


def test_stock_show_unknown_product(app, db_session):
    result = app.test_cli_runner().invoke(args=["stock", "show", "999"])
    assert result.exit_code != 0
    assert "not found" in result.output
