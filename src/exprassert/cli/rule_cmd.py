"""Rule CLI commands: check, compile and eval."""

from pathlib import Path
from typing import NoReturn

import click

from exprassert.config import EngineConfig
from exprassert.errors import CompilationError, EvaluationError
from exprassert.expressions import compile_expression
from exprassert.loader import RulesFileError, load_objects, load_rules_file
from exprassert.rules import RuleDefinition, load_helper
from exprassert.services import MappingServiceResolver
from exprassert.validator import RuleValidator

# Exit codes
EXIT_INVALID = 1
EXIT_ERROR = 2


def _fail(message: str) -> NoReturn:
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    raise SystemExit(EXIT_ERROR)


def _config(obj: EngineConfig | None) -> EngineConfig:
    return obj if obj is not None else EngineConfig.from_env()


@click.command()
@click.argument("rules_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def check(obj: EngineConfig | None, rules_file: Path, data_file: Path):
    """Validate every object in DATA_FILE against every rule in RULES_FILE."""
    config = _config(obj)

    try:
        declared = load_rules_file(rules_file)
        resolver = declared.create_resolver()
        validators = [
            RuleValidator(rule, resolver, config.create_converter())
            for rule in declared.rules
        ]
        objects = load_objects(data_file)
    except (CompilationError, RulesFileError, ImportError, TypeError, ValueError) as e:
        _fail(str(e))

    invalid = 0
    for index, instance in enumerate(objects):
        for validator in validators:
            label = validator.expression
            if validator.guard:
                label += f"  (if {validator.guard})"
            try:
                valid = validator.validate(instance)
            except EvaluationError as e:
                _fail(f"object[{index}]: {label}: {e}")

            if valid:
                click.echo(click.style(f"  ✓ object[{index}]: {label}", fg="green"))
            else:
                invalid += 1
                click.echo(click.style(f"  ✗ object[{index}]: {label}", fg="red"))

    summary = f"\n{len(objects)} object(s) checked against {len(validators)} rule(s)"
    if invalid:
        click.echo(click.style(f"{summary}: {invalid} violation(s).", fg="red", bold=True))
        raise SystemExit(EXIT_INVALID)

    click.echo(click.style(f"{summary}: all valid.", fg="green", bold=True))


@click.command("compile")
@click.argument("expression")
@click.option("--guard", default="", help="Guard expression to compile as well.")
def compile_cmd(expression: str, guard: str):
    """Check that EXPRESSION (and --guard) compile."""
    for text in (expression, guard):
        if not text:
            continue
        try:
            compile_expression(text)
        except CompilationError as e:
            click.echo(click.style(str(e), fg="red"), err=True)
            raise SystemExit(EXIT_INVALID)
        click.echo(f"✓ {text}")


@click.command("eval")
@click.argument("expression")
@click.option(
    "--data",
    "data_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML/JSON file holding the object to validate.",
)
@click.option("--guard", default="", help="Guard expression.")
@click.option(
    "--helpers",
    multiple=True,
    help='Helper source, "package.module" or "package.module:ClassName". Repeatable.',
)
@click.option(
    "--service",
    "services",
    multiple=True,
    help='Named service, "name=package.module:attribute". Repeatable.',
)
@click.pass_obj
def eval_cmd(
    obj: EngineConfig | None,
    expression: str,
    data_file: Path | None,
    guard: str,
    helpers: tuple[str, ...],
    services: tuple[str, ...],
):
    """Evaluate EXPRESSION against one object and print valid/invalid."""
    config = _config(obj)

    try:
        definition = RuleDefinition(
            expression=expression,
            guard=guard,
            helpers=tuple(load_helper(h) for h in helpers),
        )
        resolver = _parse_services(services)
        validator = RuleValidator(definition, resolver, config.create_converter())
        objects = load_objects(data_file) if data_file else [{}]
    except (CompilationError, RulesFileError, ImportError, TypeError, ValueError) as e:
        _fail(str(e))

    if not objects:
        _fail(f"{data_file}: no object to evaluate")
    instance = objects[0]

    try:
        valid = validator.validate(instance)
    except EvaluationError as e:
        _fail(str(e))

    if valid:
        click.echo(click.style("valid", fg="green"))
        return

    click.echo(click.style("invalid", fg="red"))
    raise SystemExit(EXIT_INVALID)


def _parse_services(entries: tuple[str, ...]) -> MappingServiceResolver | None:
    if not entries:
        return None

    services = {}
    for entry in entries:
        name, sep, reference = entry.partition("=")
        if not sep or not name.strip() or not reference.strip():
            raise ValueError(f"Invalid --service '{entry}', expected name=module:attribute")
        services[name.strip()] = load_helper(reference.strip())
    return MappingServiceResolver(services)
