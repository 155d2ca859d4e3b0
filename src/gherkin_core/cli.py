import asyncio
import importlib
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

import click
import yaml

from .core import ConfigManager, GherkinCoreError
from .executor import HookRegistry, StepDefinitionRegistry, TagFilter, TestRunner
from .executor.suggestion import suggest as suggest_step
from .models import Pickle, StepKeywordType, StepStatus
from . import __version__

STATUS_ICONS = {
    StepStatus.PASSED: "✅",
    StepStatus.SKIPPED: "⏭️ ",
    StepStatus.PENDING: "⏸️ ",
    StepStatus.UNDEFINED: "❓",
    StepStatus.AMBIGUOUS: "⚠️ ",
    StepStatus.FAILED: "❌",
}

ERROR_STATUSES = (StepStatus.FAILED, StepStatus.AMBIGUOUS, StepStatus.UNDEFINED)


@click.group()
@click.option('--config', '-c', type=click.Path(), help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, config, verbose):
    """Gherkin Core - match and run Gherkin scenarios"""
    # Load configuration
    config_path = Path(config) if config else None
    ctx.obj = ConfigManager(config_path)

    # Setup logging
    log_level = str(ctx.obj.get('general.log_level', 'INFO')).upper()
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@cli.command()
def version():
    """Show version information"""
    click.echo(f"Gherkin Core v{__version__}")
    info = TestRunner.get_info()
    click.echo(f"{info['name']}: {info['description']}")
    for capability in info['capabilities']:
        click.echo(f"  - {capability}")


@cli.command()
@click.argument('text')
@click.option('--keyword', '-k', type=click.Choice(['given', 'when', 'then']),
              help='Keyword of the undefined step')
@click.option('--param-type', '-p', 'param_types', multiple=True,
              help='Custom parameter type to mention in the snippet')
def suggest(text, keyword, param_types):
    """Suggest a step definition for an undefined step"""
    suggestion = suggest_step(text, StepKeywordType.from_keyword(keyword), list(param_types))
    click.echo(f"Expression: {suggestion.expression}")
    click.echo(f"Function:   {suggestion.function_name}")
    click.echo("")
    click.echo(suggestion.snippet)


@cli.command()
@click.argument('expression')
@click.option('--tag', '-t', 'tag_names', multiple=True, help='Tag to evaluate against (repeatable)')
@click.pass_context
def tags(ctx, expression, tag_names):
    """Validate a tag expression and evaluate it against tags"""
    try:
        tag_filter = TagFilter(expression)
    except GherkinCoreError as e:
        click.echo(f"❌ Invalid tag expression: {e}", err=True)
        ctx.exit(1)

    click.echo(f"Parsed: {tag_filter.root}")
    if tag_names:
        matched = tag_filter.matches(tag_names)
        click.echo(f"{'✅ Matches' if matched else '❌ Does not match'}: {' '.join(tag_names)}")


def load_pickles(path: Path) -> Tuple[List[Pickle], Dict[str, Any]]:
    """
    Read pickles from a YAML or JSON file.

    The file holds either a list of pickles or a mapping with ``pickles`` and
    the optional ``feature`` name and ``tags``.
    """
    with open(path, 'r') as f:
        if path.suffix == '.json':
            data = json.load(f)
        else:
            data = yaml.safe_load(f) or []

    if isinstance(data, list):
        data = {'pickles': data}
    if not isinstance(data, dict):
        raise click.ClickException(f"Pickles file must contain a list or a mapping: {path}")

    pickles = [Pickle.from_dict(item, index) for index, item in enumerate(data.get('pickles', []))]
    return pickles, data


def load_steps_module(module_name: str):
    """Import a step module and collect its registry, hooks and state"""
    if str(Path.cwd()) not in sys.path:
        sys.path.insert(0, str(Path.cwd()))
    module = importlib.import_module(module_name)

    registry = getattr(module, 'registry', None)
    if not isinstance(registry, StepDefinitionRegistry):
        registry = StepDefinitionRegistry()
        registry.register_from_module(module)

    hooks = getattr(module, 'hooks', None) or HookRegistry()
    return module, registry, hooks


@cli.command()
@click.option('--steps', '-s', 'steps_module', required=True, help='Importable module with step definitions')
def steps(steps_module):
    """List registered step definitions"""
    _, registry, _ = load_steps_module(steps_module)

    if not len(registry):
        click.echo("No step definitions found")
        return

    click.echo(f"📋 {len(registry)} step definitions:\n")
    for definition in registry.list_definitions():
        keyword = definition['keyword'] or '*'
        click.echo(f"  [{keyword}] {definition['pattern']}  ({definition['function']} at {definition['location']})")


@cli.command()
@click.argument('pickles_file', type=click.Path(exists=True))
@click.option('--steps', '-s', 'steps_module', required=True, help='Importable module with step definitions')
@click.option('--dry-run', is_flag=True, help='Match steps without running them')
@click.option('--tags', '-t', 'tag_expression', help='Tag expression selecting scenarios')
@click.option('--feature', '-f', 'feature_name', help='Feature name for the report')
@click.pass_context
def run(ctx, pickles_file, steps_module, dry_run, tag_expression, feature_name):
    """Run pickles against step definitions"""
    pickles, data = load_pickles(Path(pickles_file))
    module, registry, hooks = load_steps_module(steps_module)

    runner_config = dict(ctx.obj.get_module_config('runner') or {})
    if dry_run:
        runner_config['dry_run'] = True
    if tag_expression:
        runner_config['tags'] = tag_expression

    try:
        runner = TestRunner(registry, hooks, runner_config)
    except GherkinCoreError as e:
        click.echo(f"❌ Configuration error: {e}", err=True)
        ctx.exit(1)

    click.echo(f"🧪 Running {len(pickles)} scenarios from: {pickles_file}")
    result = asyncio.run(runner.run(
        pickles,
        feature_name=feature_name or data.get('feature', ''),
        feature_tags=data.get('tags', []),
        feature=getattr(module, 'state', None),
        state_factory=getattr(module, 'create_state', None),
    ))

    for scenario in result.scenario_results:
        click.echo(f"{STATUS_ICONS[scenario.status]} {scenario.name} ({scenario.duration:.3f}s)")
        for step_result in scenario.step_results:
            if step_result.status is not StepStatus.PASSED:
                click.echo(f"    {step_result.status.value}: {step_result.step.text}")
            if step_result.error_message and step_result.status is StepStatus.FAILED:
                click.echo(f"      {step_result.error_message}")

    click.echo(f"\n📊 Summary:")
    click.echo(f"  - Total: {result.total_count}")
    click.echo(f"  - Passed: {result.passed_count}")
    click.echo(f"  - Failed: {result.failed_count}")
    click.echo(f"  - Skipped: {result.skipped_count}")
    click.echo(f"  - Pending: {result.pending_count}")
    click.echo(f"  - Undefined: {result.undefined_count}")
    click.echo(f"  - Ambiguous: {result.ambiguous_count}")

    suggestions = result.all_suggestions
    if suggestions:
        click.echo("\n💡 You can implement undefined steps with these snippets:\n")
        seen = set()
        for suggestion in suggestions:
            if suggestion.expression in seen:
                continue
            seen.add(suggestion.expression)
            click.echo(suggestion.snippet)
            click.echo("")

    if result.status in ERROR_STATUSES:
        ctx.exit(1)


@cli.group(name='config')
def config_group():
    """Configuration commands"""
    pass


@config_group.command(name='show')
@click.pass_context
def config_show(ctx):
    """Print the effective configuration"""
    click.echo(f"# {ctx.obj.config_path}")
    click.echo(yaml.safe_dump(ctx.obj.data, default_flow_style=False, sort_keys=False).rstrip())


@config_group.command(name='get')
@click.argument('key')
@click.pass_context
def config_get(ctx, key):
    """Print one dotted configuration key"""
    value = ctx.obj.get(key)
    if value is None:
        click.echo(f"❌ Not set: {key}", err=True)
        ctx.exit(1)
    click.echo(value if not isinstance(value, (dict, list)) else yaml.safe_dump(value).rstrip())


@config_group.command(name='set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def config_set(ctx, key, value):
    """Set a dotted configuration key and save the file (VALUE is parsed as YAML)"""
    try:
        ctx.obj.set(key, yaml.safe_load(value))
    except GherkinCoreError as e:
        click.echo(f"❌ {e}", err=True)
        ctx.exit(1)

    path = ctx.obj.save()
    click.echo(f"✅ {key} saved to {path}")


def main():
    """Main entry point"""
    cli()


if __name__ == '__main__':
    main()
