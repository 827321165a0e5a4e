"""Tests for CLI commands."""

import json
import os
from pathlib import Path
import pytest
from click.testing import CliRunner
from reconciler import __version__
from reconciler.cli.main import cli

NETWORK_YAML = """
variable:
  env:
    default: dev

resource:
  aws_vpc:
    main:
      cidr_block: 10.0.0.0/16
      tags:
        Name: main-${var.env}
  aws_subnet:
    public:
      vpc_id: ${aws_vpc.main.id}
      cidr_block: 10.0.1.0/24
  aws_instance:
    web:
      ami: ami-0c55b159cbfafe1f0
      instance_type: t2.micro
      subnet_id: ${aws_subnet.public.id}
"""

CYCLE_YAML = """
resource:
  aws_security_group:
    a:
      name: a
      vpc_id: ${aws_security_group.b.id}
    b:
      name: b
      vpc_id: ${aws_security_group.a.id}
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def workspace(runner, tmp_path, monkeypatch):
    """Isolated working directory with a network configuration and no user config."""
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    with runner.isolated_filesystem(temp_dir=tmp_path) as directory:
        Path("main.yaml").write_text(NETWORK_YAML)
        yield Path(directory)


class TestInfoCommands:
    """version, validate and graph."""

    def test_version_command(self, runner):
        result = runner.invoke(cli, ['version'])
        assert result.exit_code == 0
        assert result.output.strip() == f"reconciler version {__version__}"

    def test_version_option(self, runner):
        result = runner.invoke(cli, ['--version'])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_validate(self, runner, workspace):
        result = runner.invoke(cli, ['validate'])
        assert result.exit_code == 0
        assert "3 resources" in result.output

    def test_validate_cycle(self, runner, workspace):
        Path("main.yaml").write_text(CYCLE_YAML)
        result = runner.invoke(cli, ['validate'])

        assert result.exit_code == 1
        assert "Error: Dependency cycle detected" in result.output
        assert "Tip:" in result.output

    def test_missing_config_path(self, runner, workspace):
        result = runner.invoke(cli, ['validate', '-c', 'nope.yaml'])
        assert result.exit_code == 1
        assert "Configuration not found" in result.output

    def test_graph_dot(self, runner, workspace):
        result = runner.invoke(cli, ['graph'])
        assert result.exit_code == 0
        assert '"aws_subnet.public" -> "aws_vpc.main" [label="id"];' in result.output

    def test_graph_order(self, runner, workspace):
        result = runner.invoke(cli, ['graph', '--order'])
        assert result.output.split() == ["aws_vpc.main", "aws_subnet.public", "aws_instance.web"]


class TestPlanApplyDestroy:
    """Full lifecycle through the CLI."""

    def test_plan_shows_creates(self, runner, workspace):
        result = runner.invoke(cli, ['plan'])

        assert result.exit_code == 0
        assert "+ resource \"aws_vpc\" \"main\"" in result.output
        assert "(known after apply)" in result.output
        assert "Plan: 3 to create, 0 to update, 0 to replace, 0 to destroy." in result.output
        assert not (workspace / ".reconciler" / "state.json").exists()

    def test_plan_json(self, runner, workspace):
        result = runner.invoke(cli, ['plan', '--json'])
        plan = json.loads(result.output)

        assert [s["action"] for s in plan["steps"]] == ["create", "create", "create"]
        assert plan["steps"][0]["changes"]["tags"]["after"] == {"Name": "main-dev"}

    def test_apply_then_no_changes(self, runner, workspace):
        result = runner.invoke(cli, ['apply', '--auto-approve'])
        assert result.exit_code == 0, result.output
        assert "Apply complete! Resources: 3 created" in result.output

        result = runner.invoke(cli, ['plan'])
        assert "No changes." in result.output

    def test_apply_prompt_declined(self, runner, workspace):
        result = runner.invoke(cli, ['apply'], input="n\n")

        assert result.exit_code == 1
        assert "Aborted" in result.output
        assert not (workspace / ".reconciler" / "state.json").exists()

    def test_apply_prompt_accepted(self, runner, workspace):
        result = runner.invoke(cli, ['apply'], input="y\n")
        assert result.exit_code == 0
        assert "Apply complete!" in result.output

    def test_apply_json_report(self, runner, workspace):
        result = runner.invoke(cli, ['apply', '--auto-approve', '--json'])
        report = json.loads(result.output)
        assert [o["status"] for o in report["outcomes"]] == ["created", "created", "created"]

    def test_partial_failure_exit_code(self, runner, workspace):
        Path("main.yaml").write_text(NETWORK_YAML.replace("10.0.1.0/24", "192.168.1.0/24"))
        result = runner.invoke(cli, ['apply', '--auto-approve'])

        assert result.exit_code == 2
        assert "aws_instance.web: skipped: blocked by aws_subnet.public" in result.output
        assert "1 failed, 1 skipped." in result.output

    def test_var_override_from_environment(self, runner, workspace):
        result = runner.invoke(cli, ['plan', '--json'], env={"RECONCILER_VAR_env": "prod"})
        plan = json.loads(result.output)
        assert plan["steps"][0]["changes"]["tags"]["after"] == {"Name": "main-prod"}

    def test_no_replace(self, runner, workspace):
        runner.invoke(cli, ['apply', '--auto-approve'])
        Path("main.yaml").write_text(NETWORK_YAML.replace("ami-0c55b159cbfafe1f0", "ami-new"))

        result = runner.invoke(cli, ['plan', '--no-replace'])
        assert result.exit_code == 1
        assert "must be replaced" in result.output

        result = runner.invoke(cli, ['plan'])
        assert "must be replaced" in result.output
        assert "# forces replacement" in result.output

    def test_destroy(self, runner, workspace):
        runner.invoke(cli, ['apply', '--auto-approve'])
        result = runner.invoke(cli, ['destroy', '--auto-approve'])

        assert result.exit_code == 0
        assert "3 destroyed" in result.output
        assert runner.invoke(cli, ['state', 'list']).output.strip() == ""

    def test_destroy_without_configuration(self, runner, workspace):
        runner.invoke(cli, ['apply', '--auto-approve'])
        os.remove("main.yaml")

        result = runner.invoke(cli, ['destroy', '--auto-approve'])
        assert result.exit_code == 0
        assert "3 destroyed" in result.output

    def test_custom_state_path(self, runner, workspace):
        result = runner.invoke(cli, ['apply', '--auto-approve', '--state', 'custom.json'])
        assert result.exit_code == 0
        assert Path("custom.json").exists()


class TestStateCommands:
    """state list / show."""

    def test_state_list_and_show(self, runner, workspace):
        runner.invoke(cli, ['apply', '--auto-approve'])

        listed = runner.invoke(cli, ['state', 'list'])
        assert listed.output.split() == ["aws_vpc.main", "aws_subnet.public", "aws_instance.web"]

        shown = runner.invoke(cli, ['state', 'show', 'aws_subnet.public'])
        assert shown.exit_code == 0
        assert 'cidr_block = "10.0.1.0/24"' in shown.output
        assert "# depends on: aws_vpc.main" in shown.output

    def test_state_show_json(self, runner, workspace):
        runner.invoke(cli, ['apply', '--auto-approve'])
        shown = runner.invoke(cli, ['state', 'show', 'aws_vpc.main', '--json'])
        assert json.loads(shown.output)["outputs"]["id"].startswith("vpc-")

    def test_state_show_missing(self, runner, workspace):
        result = runner.invoke(cli, ['state', 'show', 'aws_vpc.nope'])
        assert result.exit_code == 1
        assert "No resource 'aws_vpc.nope'" in result.output
