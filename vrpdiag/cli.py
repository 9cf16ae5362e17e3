"""
Command-line interface for unassigned-job diagnostics.
Provides commands to explain leftover jobs and audit route limits.
"""

import logging

import click

from .exceptions import DiagnosticsError
from .reporting_summary import print_reason_summary
from .service import DiagnosticsService


logger = logging.getLogger(__name__)


@click.group()
@click.option('--config', default='config/params.yaml', help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def main(ctx, config: str, verbose: bool):
    """VRP unassigned-job diagnostics CLI."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose


def _service(ctx) -> DiagnosticsService:
    try:
        service = DiagnosticsService(ctx.obj['config_path'])
    except DiagnosticsError as e:
        raise click.ClickException(str(e))
    if ctx.obj.get('verbose'):
        logging.getLogger().setLevel(logging.DEBUG)
    return service


@main.command()
@click.argument('problem_file', type=click.Path(exists=True))
@click.argument('solution_file', type=click.Path(exists=True))
@click.option('--output', '-o', default=None, help='Write the unassigned fragment to this file')
@click.option('--workers', type=int, default=None, help='Override diagnostics.max_workers')  # CLI > YAML
@click.option('--exhaustive', is_flag=True, help='Run every checker at every insertion position')
@click.option('--summary', is_flag=True, help='Print per-reason counts')
@click.pass_context
def explain(ctx, problem_file: str, solution_file: str, output: str, workers: int, exhaustive: bool, summary: bool):
    """Explain why each unassigned job was left out."""
    service = _service(ctx)
    if workers is not None:
        if workers < 1:
            raise click.BadParameter("must be at least 1", param_hint="--workers")
        service.config.diagnostics.max_workers = workers
    if exhaustive:
        service.config.diagnostics.exhaustive = True

    try:
        problem = service.load_problem(problem_file)
        solution = service.load_solution(solution_file)
        report = service.explain(problem, solution)
    except DiagnosticsError as e:
        logger.error(f"Diagnostics failed: {e}")
        raise click.ClickException(str(e))
    except ValueError as e:  # pydantic ValidationError included
        raise click.ClickException(f"Invalid input: {e}")

    if output:
        path = service.write_report(report, output)
        click.echo(f"Wrote {len(report)} unassigned job(s) to {path}")
    else:
        click.echo(report.to_json())

    if summary:
        print_reason_summary(report, problem_jobs=len(problem.jobs))


@main.command()
@click.argument('problem_file', type=click.Path(exists=True))
@click.argument('solution_file', type=click.Path(exists=True))
@click.pass_context
def audit(ctx, problem_file: str, solution_file: str):
    """Check reported routes against vehicle limits."""
    service = _service(ctx)
    try:
        problem = service.load_problem(problem_file)
        solution = service.load_solution(solution_file)
        violations = service.audit(problem, solution)
    except DiagnosticsError as e:
        raise click.ClickException(str(e))
    except ValueError as e:
        raise click.ClickException(f"Invalid input: {e}")

    if not violations:
        click.echo("All routes within vehicle limits")
        return
    for violation in violations:
        click.echo(violation.message)
    ctx.exit(1)


if __name__ == '__main__':
    main()
