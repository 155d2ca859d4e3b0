import json
import textwrap

import pytest
import yaml
from click.testing import CliRunner
from gherkin_core.cli import cli

STEPS_MODULE = textwrap.dedent('''
    from gherkin_core import HookRegistry, StepDefinitionRegistry

    registry = StepDefinitionRegistry()
    hooks = HookRegistry()
    state = {"cucumbers": 0}


    @registry.given("I have {int} cucumbers")
    def have(state, count):
        state["cucumbers"] = int(count)


    @registry.then("I should have {int} cucumbers")
    def check(state, count):
        assert state["cucumbers"] == int(count)
''')

MARKED_MODULE = textwrap.dedent('''
    from gherkin_core import given, when


    @given("I start")
    def start(state):
        pass


    @when("I go {int} steps")
    def go(state, count):
        pass
''')

PICKLES = textwrap.dedent('''
    feature: Cucumbers
    tags: ["@fruit"]
    pickles:
      - name: Counting
        tags: ["@smoke"]
        steps:
          - I have 3 cucumbers
          - I should have 3 cucumbers
      - name: Miscounting
        tags: ["@wip"]
        steps:
          - I have 3 cucumbers
          - I should have 4 cucumbers
''')


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.setenv("GHERKIN_CORE_CONFIG", str(tmp_path / "missing.yaml"))
    return tmp_path


@pytest.fixture
def runner():
    return CliRunner()


class TestInfoCommands:
    """Test commands that need no step module"""

    def test_version(self, runner, workspace):
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert "Gherkin Core v0.1.0" in result.output

    def test_suggest(self, runner, workspace):
        result = runner.invoke(cli, ["suggest", "I have 5 cucumbers", "--keyword", "when"])
        assert result.exit_code == 0
        assert "Expression: I have {int} cucumbers" in result.output
        assert '@when("I have {int} cucumbers")' in result.output
        assert "async def iHaveIntCucumbers(state, int):" in result.output

    def test_suggest_with_custom_types(self, runner, workspace):
        result = runner.invoke(cli, ["suggest", "I see red", "-p", "color"])
        assert "# Custom parameter types: {color}" in result.output

    def test_tags_match(self, runner, workspace):
        result = runner.invoke(cli, ["tags", "@smoke and not @wip", "--tag", "@smoke"])
        assert result.exit_code == 0
        assert "Parsed: (@smoke and not @wip)" in result.output
        assert "Matches" in result.output

    def test_tags_no_match(self, runner, workspace):
        result = runner.invoke(cli, ["tags", "@smoke and not @wip", "-t", "@smoke", "-t", "@wip"])
        assert result.exit_code == 0
        assert "Does not match" in result.output

    def test_tags_invalid(self, runner, workspace):
        result = runner.invoke(cli, ["tags", "(@smoke or @wip"])
        assert result.exit_code == 1
        assert "Invalid tag expression" in result.output


class TestStepCommands:
    """Test commands that load a step module"""

    @pytest.fixture
    def steps_module(self, workspace):
        (workspace / "cli_steps.py").write_text(STEPS_MODULE)
        (workspace / "pickles.yaml").write_text(PICKLES)
        return "cli_steps"

    def test_steps_lists_registry(self, runner, steps_module):
        result = runner.invoke(cli, ["steps", "--steps", steps_module])
        assert result.exit_code == 0
        assert "2 step definitions" in result.output
        assert "I have {int} cucumbers" in result.output

    def test_steps_from_marked_functions(self, runner, workspace):
        (workspace / "cli_marked_steps.py").write_text(MARKED_MODULE)
        result = runner.invoke(cli, ["steps", "--steps", "cli_marked_steps"])
        assert result.exit_code == 0
        assert "I start" in result.output
        assert "I go {int} steps" in result.output

    def test_run_with_failure_exits_1(self, runner, steps_module):
        result = runner.invoke(cli, ["run", "pickles.yaml", "--steps", steps_module])
        assert result.exit_code == 1
        assert "Counting" in result.output
        assert "Passed: 1" in result.output
        assert "Failed: 1" in result.output
        assert "AssertionError" in result.output

    def test_run_filtered_by_tags(self, runner, steps_module):
        result = runner.invoke(cli, ["run", "pickles.yaml", "--steps", steps_module, "--tags", "not @wip"])
        assert result.exit_code == 0
        assert "Passed: 1" in result.output
        assert "Skipped: 1" in result.output

    def test_dry_run(self, runner, steps_module):
        result = runner.invoke(cli, ["run", "pickles.yaml", "--steps", steps_module, "--dry-run"])
        assert result.exit_code == 0
        assert "Passed: 2" in result.output

    def test_run_undefined_prints_snippet(self, runner, steps_module, workspace):
        (workspace / "undefined.json").write_text(json.dumps([
            {"name": "Unknown", "steps": [{"text": "I juggle 3 cucumbers", "keyword": "when"}]},
        ]))
        result = runner.invoke(cli, ["run", "undefined.json", "--steps", steps_module])
        assert result.exit_code == 1
        assert "Undefined: 1" in result.output
        assert '@when("I juggle {int} cucumbers")' in result.output

    def test_run_with_invalid_tags(self, runner, steps_module):
        result = runner.invoke(cli, ["run", "pickles.yaml", "--steps", steps_module, "--tags", "@a and"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestConfigCommands:
    """Test config commands"""

    def test_show_defaults(self, runner, workspace):
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0
        assert "log_level: INFO" in result.output

    def test_set_saves_and_get_reads_back(self, runner, tmp_path):
        path = tmp_path / "cfg.yaml"
        result = runner.invoke(cli, ["--config", str(path), "config", "set", "runner.parallel_workers", "4"])
        assert result.exit_code == 0
        assert str(path) in result.output
        assert yaml.safe_load(path.read_text())["runner"]["parallel_workers"] == 4

        result = runner.invoke(cli, ["--config", str(path), "config", "get", "runner.parallel_workers"])
        assert result.exit_code == 0
        assert result.output.strip() == "4"

    def test_set_through_a_value_fails(self, runner, tmp_path):
        path = tmp_path / "cfg.yaml"
        result = runner.invoke(cli, ["--config", str(path), "config", "set", "general.log_level.deep", "1"])
        assert result.exit_code == 1
        assert not path.exists()

    def test_get_missing_key(self, runner, tmp_path):
        result = runner.invoke(cli, ["--config", str(tmp_path / "cfg.yaml"), "config", "get", "nope.missing"])
        assert result.exit_code == 1
