"""
Flask CLI command tests (run through app.test_cli_runner()).
"""

from spherical.models import User
from spherical.permissions import Role


def _run(app, *args):
    return app.test_cli_runner().invoke(args=list(args))


class TestPermsCommands:

    def test_check_allowed(self, app):
        result = _run(app, "perms", "check", "cashier", "PROCESS_SALES")
        assert result.exit_code == 0
        assert "PASS CASHIER may perform PROCESS_SALES" in result.output

    def test_check_denied(self, app):
        result = _run(app, "perms", "check", "cashier", "MANAGE_USERS")
        assert "FAIL cashier may NOT perform MANAGE_USERS" in result.output

    def test_check_unknown_action(self, app):
        result = _run(app, "perms", "check", "ADMIN", "LAUNCH_ROCKETS")
        assert "Unknown action" in result.output
        assert "FAIL" in result.output

    def test_list_filtered_by_role(self, app):
        result = _run(app, "perms", "list", "--role", "report_viewer")
        assert "VIEW_REPORTS" in result.output
        assert "PROCESS_SALES" not in result.output


class TestUserCommands:

    def test_create_user(self, app, db_session):
        result = _run(
            app, "users", "create",
            "--name", "Adwoa Asante",
            "--email", "adwoa@spherical.test",
            "--password", "secret1",
            "--role", "inventory_manager",
        )
        assert result.exit_code == 0
        assert "PASS Created user: adwoa@spherical.test" in result.output
        user = db_session.query(User).filter_by(email="adwoa@spherical.test").one()
        assert user.role == Role.INVENTORY_MANAGER.value

    def test_create_user_bad_role(self, app, db_session):
        result = _run(
            app, "users", "create",
            "--name", "Adwoa Asante",
            "--email", "adwoa@spherical.test",
            "--password", "secret1",
            "--role", "janitor",
        )
        assert "FAIL role: Unknown role" in result.output
        assert db_session.query(User).count() == 0

    def test_list_users(self, app, cashier):
        result = _run(app, "users", "list")
        assert "cashier@spherical.test" in result.output


class TestSystemCommands:

    def test_init_bootstraps_director_once(self, app, db_session):
        result = _run(app, "system", "init", "--email", "boss@spherical.test", "--password", "secret1")
        assert "PASS Created managing director: boss@spherical.test" in result.output
        assert db_session.query(User).filter_by(role="MANAGING_DIRECTOR").count() == 1

        result = _run(app, "system", "init")
        assert "skipping managing director bootstrap" in result.output
        assert db_session.query(User).count() == 1


class TestSessionCommands:

    def test_cleanup(self, app, db_session):
        result = _run(app, "sessions", "cleanup", "--retention-days", "7")
        assert result.exit_code == 0
        assert "PASS Deleted 0 session(s)" in result.output
