"""CLI smoke tests against a throwaway SQLite file."""

import pytest

from burnwise_config import CONFIG_ENV_VAR
from burnwise_kernel.db.engine import reset_engine
from scripts.cli.main import main
from scripts.cli.util import fmt_amount


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    yield url
    reset_engine()


def run(db_url, *args):
    return main(["--db-url", db_url, *args])


class TestCli:
    def test_init_add_rate_and_summary(self, db_url, capsys):
        assert run(db_url, "init-db") == 0
        assert run(db_url, "add-rate", "usd", "34.5", "--date", "2025-03-01") == 0
        assert run(db_url, "summary", "--as-of", "2025-03-15") == 0

        out = capsys.readouterr().out
        assert "Tables created." in out
        assert "USD/TRY" in out
        assert "2025-03-01" in out
        assert "As of 2025-03-15  (TRY)" in out
        assert "Net position: 0.00 TRY" in out
        assert "This month: income 0.00  expense 0.00  balance 0.00 TRY" in out

    def test_report_and_projects_on_empty_book(self, db_url, capsys):
        run(db_url, "init-db")

        assert run(db_url, "report", "--as-of", "2025-03-15", "--kind", "debt") == 0
        assert run(db_url, "projects", "--as-of", "2025-03-15", "--base", "USD") == 0

        out = capsys.readouterr().out
        assert "Debt report as of 2025-03-15" in out
        assert "Projects as of 2025-03-15  (USD)" in out

    def test_transactions_on_empty_book(self, db_url, capsys):
        run(db_url, "init-db")

        assert run(db_url, "transactions", "--from", "2025-03-01", "--to", "2025-03-31", "--type", "income") == 0

        out = capsys.readouterr().out
        assert "Transactions 2025-03-01 to 2025-03-31  (TRY)" in out
        assert "Income 0.00  expense 0.00  balance 0.00 TRY" in out

    def test_transactions_reversed_range(self, db_url, capsys):
        run(db_url, "init-db")

        assert run(db_url, "transactions", "--from", "2025-03-31", "--to", "2025-03-01") == 2

        assert "VALIDATION_ERROR" in capsys.readouterr().err

    def test_kernel_error_exit_code(self, db_url, capsys):
        run(db_url, "init-db")

        assert run(db_url, "add-rate", "TRY", "1", "--date", "2025-03-01") == 2

        assert "VALIDATION_ERROR" in capsys.readouterr().err

    def test_missing_config_file(self, db_url, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "absent.yaml"), "--db-url", db_url, "init-db"]) == 1

        assert "ERROR" in capsys.readouterr().err

    def test_bad_date_argument(self, db_url):
        with pytest.raises(SystemExit):
            run(db_url, "summary", "--as-of", "15/03/2025")


class TestFmtAmount:
    def test_rounds_and_groups(self):
        assert fmt_amount("1234.505", "TRY") == "1,234.51 TRY"
        assert fmt_amount(0) == "0.00"
