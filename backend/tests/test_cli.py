"""
CLI command tests (flask system / users / products).
"""

from stockroom.models import Product, User

from conftest import FAILSAFE_EMAIL, make_product


def test_system_init_creates_failsafe(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["system", "init", "--failsafe-password", "bootstrap-pass"])
    assert result.exit_code == 0, result.output
    assert "Failsafe admin ready" in result.output

    db_session.expire_all()
    user = db_session.query(User).filter_by(email=FAILSAFE_EMAIL).one()
    assert user.is_failsafe and user.role == "admin"


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--email", "Cli.User@stockroom.test",
        "--first-name", "Cli",
        "--last-name", "User",
        "--password", "cli-pass",
        "--role", "manager",
    ])
    assert result.exit_code == 0, result.output
    assert "cli.user@stockroom.test" in result.output

    listing = runner.invoke(args=["users", "list"])
    assert "cli.user@stockroom.test" in listing.output
    assert "manager" in listing.output


def test_users_create_rejects_short_password(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "users", "create",
        "--email", "short@stockroom.test",
        "--first-name", "S",
        "--last-name", "P",
        "--password", "abc",
    ])
    assert result.exit_code != 0
    assert "at least 6 characters" in result.output


def test_products_compact(app, db_session):
    make_product(db_session, name="A")
    b = make_product(db_session, name="B")
    db_session.query(Product).filter_by(id=b.id).update({"product_number": 9})
    db_session.commit()

    result = app.test_cli_runner().invoke(args=["products", "compact"])
    assert result.exit_code == 0, result.output
    assert "1 renumbered" in result.output

    db_session.expire_all()
    assert sorted(n for (n,) in db_session.query(Product.product_number)) == [1, 2]
