"""Tests for the organization CLI against the sample fixture."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from interfaces.cli import app

FIXTURE = str(Path(__file__).parents[1] / "data" / "sample_library.yaml")


@pytest.fixture
def runner():
    return CliRunner()


class TestAnalyzeCommand:
    """Tests for the analyze command."""

    def test_prints_suggestions(self, runner):
        result = runner.invoke(app, ["analyze", "doc-weaving", "--fixture", FIXTURE])

        assert result.exit_code == 0
        assert "weaving" in result.output
        assert "File weaving material under textiles" in result.output

    def test_json_output(self, runner):
        result = runner.invoke(app, ["analyze", "doc-weaving", "--fixture", FIXTURE, "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["item_id"] == "doc-weaving"
        assert payload["rule_matches"][0]["rule"]["id"] == "rule-weaving-collection"

    def test_unknown_item_fails(self, runner):
        result = runner.invoke(app, ["analyze", "ghost", "--fixture", FIXTURE])

        assert result.exit_code == 1
        assert "Unable to analyze item for organization" in result.output


class TestOtherCommands:
    """Tests for apply, network, pathways, rules and scan."""

    def test_apply_runs_rule_actions(self, runner):
        result = runner.invoke(app, ["apply", "doc-weaving", "--fixture", FIXTURE, "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert "move_to_collection" in payload["actions_executed"]

    def test_network(self, runner):
        result = runner.invoke(app, ["network", "doc-weaving", "--depth", "1", "--fixture", FIXTURE, "--json"])

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert [r["id"] for r in payload["direct_relationships"]] == ["rel_0001", "rel_0002", "rel_0003"]

    def test_pathways(self, runner):
        result = runner.invoke(app, ["pathways", "doc-weaving", "--fixture", FIXTURE])

        assert result.exit_code == 0
        assert "Introduction to weaving" in result.output

    def test_rules_with_item(self, runner):
        result = runner.invoke(app, ["rules", "--item", "doc-dyes", "--fixture", FIXTURE])

        assert result.exit_code == 0
        assert "2 enabled rules" in result.output
        assert "Matches for doc-dyes" in result.output

    def test_scan(self, runner):
        result = runner.invoke(app, ["scan", "--fixture", FIXTURE])

        assert result.exit_code == 0
        assert "6 queued" in result.output
