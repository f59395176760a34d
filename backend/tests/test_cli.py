from gymledger.models import Branch, RevenueMonthLock, Tenant


def test_tenant_bootstrap(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["tenants", "create", "--name", "Iron Gym", "--timezone", "Europe/Istanbul"])
    assert result.exit_code == 0, result.output
    tenant = db_session.query(Tenant).filter_by(name="Iron Gym").one()
    assert tenant.timezone == "Europe/Istanbul"

    result = runner.invoke(args=["tenants", "add-branch", "--tenant-id", tenant.id, "--name", "Kadikoy"])
    assert result.exit_code == 0, result.output
    branch = db_session.query(Branch).filter_by(tenant_id=tenant.id).one()

    result = runner.invoke(args=[
        "tenants", "add-member",
        "--tenant-id", tenant.id,
        "--branch-id", branch.id,
        "--first-name", "Ada",
        "--last-name", "Yilmaz",
    ])
    assert result.exit_code == 0, result.output
    assert "Created member" in result.output


def test_create_tenant_rejects_unknown_timezone(app, db_session):
    result = app.test_cli_runner().invoke(args=["tenants", "create", "--name", "X", "--timezone", "Nowhere/Land"])
    assert result.exit_code != 0


def test_lock_commands(app, db_session, tenant_a, branch_a):
    runner = app.test_cli_runner()
    scope = ["--tenant-id", tenant_a.id, "--branch-id", branch_a.id]

    result = runner.invoke(args=["locks", "lock", *scope, "--month", "2026-01"])
    assert result.exit_code == 0, result.output
    assert db_session.query(RevenueMonthLock).count() == 1

    result = runner.invoke(args=["locks", "lock", *scope, "--month", "2026-01"])
    assert result.exit_code != 0
    assert "MONTH_ALREADY_LOCKED" in result.output

    result = runner.invoke(args=["locks", "list", *scope])
    assert "2026-01" in result.output

    result = runner.invoke(args=["locks", "unlock", *scope, "--month", "2026-01"])
    assert result.exit_code == 0, result.output
    db_session.expire_all()
    assert db_session.query(RevenueMonthLock).count() == 0


def test_report_commands(app, db_session, tenant_a, branch_a, member_a, ledger_row):
    ledger_row(member_a, "150.00", "2024-01-15")
    runner = app.test_cli_runner()
    scope = ["--tenant-id", tenant_a.id, "--branch-id", branch_a.id]

    result = runner.invoke(args=["reports", "monthly", *scope, "--month", "2024-01"])
    assert result.exit_code == 0, result.output
    assert "150.00" in result.output

    result = runner.invoke(args=["reports", "trend", *scope, "--months", "3"])
    assert result.exit_code == 0, result.output
    assert len([line for line in result.output.splitlines() if line.strip()]) == 4

    result = runner.invoke(args=["reports", "monthly", *scope, "--month", "bad"])
    assert result.exit_code != 0
    assert "MONTH_INVALID" in result.output
