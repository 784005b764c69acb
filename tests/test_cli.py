"""
Tests for the Dealflow command line interface.
"""

import json
import logging

import pytest
import structlog

from dealflow import cli


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    structlog.reset_defaults()
    logging.basicConfig(level=logging.WARNING, force=True)


class TestCli:
    """Tests for CLI commands."""

    def test_no_command(self, capsys):
        """Without a command the help text is printed."""
        assert cli.main([]) == 1
        assert "usage: dealflow" in capsys.readouterr().out

    def test_templates(self, capsys):
        """The templates command lists built-in templates."""
        assert cli.main(["templates"]) == 0

        out = capsys.readouterr().out
        assert "- prospect-qualification [prospect]: Prospect Qualification Workflow (3 steps)" in out
        assert "bulk-order-processing" in out

    def test_templates_by_stage(self, capsys):
        """Templates can be filtered by stage."""
        assert cli.main(["templates", "--stage", "engage"]) == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 2
        assert all("[engage]" in line for line in lines)

    def test_run(self, capsys):
        """The run command executes a template and prints the execution."""
        code = cli.main(
            [
                "--log-level", "WARNING",
                "run", "deal-closing",
                "--title", "Acme",
                "--value", "1200",
                "--stage", "acquire",
                "--opportunity-id", "opp-42",
                "--actor", "dana",
            ]
        )

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["workflow_id"] == "deal-closing"
        assert data["opportunity_id"] == "opp-42"
        assert data["executed_by"] == "dana"
        assert data["status"] == "completed"
        assert data["results"][2]["output"] == ["Contract for Acme - Value: $1200"]

    def test_run_unknown_template(self, capsys):
        """Unknown templates are reported on stderr."""
        assert cli.main(["run", "nope", "--title", "Acme"]) == 2
        assert "Workflow template nope not found" in capsys.readouterr().err
