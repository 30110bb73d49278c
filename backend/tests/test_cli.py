# Overview: Pytest coverage for the Flask CLI command groups.

from ordering.models import Product, Retailer


def test_retailer_create_and_activate(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['retailers', 'create', '--name', 'CLI Shop', '--credit-limit', '2500'])
    assert result.exit_code == 0, result.output
    assert 'Created retailer: CLI Shop' in result.output

    retailer = db_session.query(Retailer).filter_by(business_name='CLI Shop').one()
    assert retailer.status == 'pending'
    assert retailer.credit_limit_cents == 2500

    result = runner.invoke(args=['retailers', 'activate', retailer.id])
    assert result.exit_code == 0, result.output

    result = runner.invoke(args=['retailers', 'list', '--status', 'active'])
    assert 'CLI Shop' in result.output


def test_activate_unknown_retailer_fails(app, db_session):
    result = app.test_cli_runner().invoke(args=['retailers', 'activate', 'missing'])

    assert result.exit_code != 0
    assert 'Retailer not found' in result.output


def test_product_create_and_adjust(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['products', 'create', '--sku', 'CLI-1', '--name', 'Flour', '--price', '900', '--stock', '4'])
    assert result.exit_code == 0, result.output
    product = db_session.query(Product).filter_by(sku='CLI-1').one()

    result = runner.invoke(args=['products', 'adjust-stock', product.id, '--delta', '-5', '--reason', 'Spill'])
    assert result.exit_code != 0
    assert 'Insufficient stock' in result.output

    result = runner.invoke(args=['products', 'adjust-stock', product.id, '--delta', '6', '--reason', 'Received'])
    assert 'Stock for CLI-1 is now 10' in result.output


def test_order_stats_command(app, db_session):
    result = app.test_cli_runner().invoke(args=['orders', 'stats'])

    assert result.exit_code == 0, result.output
    assert 'Total orders:        0' in result.output
