#!/usr/bin/env python3
"""
Basic tests for statement-mapper CLI functionality.
"""

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from statement_mapper.cli import parse_overrides

ROOT = Path(__file__).parent.parent

PENSION_CSV = "Payment Date,Pension Provider,Contribution Amount\n" + "".join(
    f"01/{month:02d}/2024,Aviva,£250.00\n" for month in range(1, 13)
)


def run_cli(*args):
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        p for p in [str(ROOT / "src"), env.get("PYTHONPATH", "")] if p
    )
    env["COLUMNS"] = "160"
    env["PYTHONIOENCODING"] = "utf-8"
    return subprocess.run(
        [sys.executable, "-m", "statement_mapper", *args],
        capture_output=True,
        text=True,
        encoding="utf-8",
        cwd=ROOT,
        env=env,
    )


@pytest.fixture
def statement(tmp_path):
    path = tmp_path / "aviva_contributions.csv"
    path.write_text(PENSION_CSV, encoding="utf-8")
    return path


def test_cli_help():
    """Test that the CLI help command works."""
    result = run_cli("--help")
    assert result.returncode == 0
    assert "Statement Mapper" in result.stdout
    assert "map" in result.stdout
    assert "confirm" in result.stdout
    assert "templates" in result.stdout


def test_version():
    """Test that --version prints the package version."""
    result = run_cli("--version")
    assert result.returncode == 0
    assert "statement-mapper 1.0.0" in result.stdout


def test_missing_command():
    """Test that missing command shows help and exits with code 1."""
    result = run_cli()
    assert result.returncode == 1


def test_map_json(statement, tmp_path):
    """Test that map --json prints a parseable mapping proposal."""
    result = run_cli("map", str(statement), "--context", "pensions", "--store", str(tmp_path / "store"), "--json")
    assert result.returncode == 0, result.stderr
    data = json.loads(result.stdout)
    assert data["mapping"] == {
        "date": "Payment Date",
        "provider": "Pension Provider",
        "amount": "Contribution Amount",
    }
    assert data["provider"]["name"] == "Aviva"
    assert data["patterns"]["frequency"] == "monthly"


def test_map_table(statement):
    """Test that map renders a human-readable table."""
    result = run_cli("map", str(statement), "--context", "pensions")
    assert result.returncode == 0, result.stderr
    assert "Field mapping" in result.stdout
    assert "Contribution Amount" in result.stdout


def test_map_missing_file(tmp_path):
    """Test that a missing statement exits with code 2."""
    result = run_cli("map", str(tmp_path / "missing.csv"), "--context", "pensions")
    assert result.returncode == 2


def test_confirm_then_list_templates(statement, tmp_path):
    """Test that confirming stores a template the templates command lists."""
    store = str(tmp_path / "store")
    result = run_cli(
        "confirm", str(statement), "--context", "pensions",
        "--user", "u1", "--provider", "Aviva", "--store", store, "--json",
    )
    assert result.returncode == 0, result.stderr
    data = json.loads(result.stdout)
    assert data["template_saved"] is True
    assert data["records"][0] == {"date": "2024-01-01", "provider": "Aviva", "amount": 250.0}
    assert (tmp_path / "store" / "u1" / "aviva_pensions.yaml").exists()

    result = run_cli("templates", "--user", "u1", "--store", store, "--json")
    assert result.returncode == 0, result.stderr
    templates = json.loads(result.stdout)["templates"]
    assert [t["template_id"] for t in templates] == ["aviva_pensions"]


def test_confirm_unknown_header(statement, tmp_path):
    """Test that an override naming a missing header exits with code 4."""
    result = run_cli(
        "confirm", str(statement), "--context", "pensions",
        "--user", "u1", "--provider", "Aviva",
        "--store", str(tmp_path / "store"), "--set", "amount=Nope",
    )
    assert result.returncode == 4


def test_confirm_unsupported_date_format(statement, tmp_path):
    """Test that a date format repeating a token exits with code 4."""
    result = run_cli(
        "confirm", str(statement), "--context", "pensions",
        "--user", "u1", "--provider", "Aviva",
        "--store", str(tmp_path / "store"), "--date-format", "DD/DD/YYYY",
    )
    assert result.returncode == 4


def test_templates_empty(tmp_path):
    result = run_cli("templates", "--user", "nobody", "--store", str(tmp_path / "store"))
    assert result.returncode == 0
    assert "No templates stored yet." in result.stdout


class TestParseOverrides:
    """Tests for --set parsing."""

    def test_pairs(self):
        assert parse_overrides(["amount=Gross", "date = Payment Date"]) == {
            "amount": "Gross",
            "date": "Payment Date",
        }

    def test_empty_header_clears(self):
        assert parse_overrides(["fees="]) == {"fees": None}

    def test_none(self):
        assert parse_overrides(None) == {}

    @pytest.mark.parametrize("pair", ["amount", "=Gross"])
    def test_invalid(self, pair):
        with pytest.raises(ValueError):
            parse_overrides([pair])
