"""
Command-line interface for javactx.
"""
import asyncio
import json
import logging
import os
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from javactx import __version__
from javactx.core import AnalysisError, EngineConfig


# Logs go to stderr so `javactx serve` keeps stdout for the protocol.
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)]
)
logger = logging.getLogger("javactx")
console = Console()


def load_config(project_root, config_file, max_type_depth=None, max_call_depth=None):
    overrides = {
        "project_root": os.path.abspath(project_root),
        "max_type_depth": max_type_depth,
        "max_call_depth": max_call_depth,
    }
    if config_file:
        return EngineConfig.from_file(config_file, **overrides)
    return EngineConfig(**{k: v for k, v in overrides.items() if v is not None})


def run_operation(config: EngineConfig, operation: str, params: dict, timeout: float):
    """Start an engine, send one operation and return its result."""
    from javactx.engine import EngineBridge

    async def _send():
        async with EngineBridge(config, request_timeout=timeout) as bridge:
            return await bridge.send(operation, params)

    try:
        return asyncio.run(_send())
    except AnalysisError as e:
        console.print(f"[red]{e.kind}: {e.message}[/red]")
        if e.context:
            console.print_json(json.dumps(e.context, default=str))
        sys.exit(1)


@click.group()
@click.version_option(__version__)
@click.option('--project-root', '-p', default='.', envvar='JAVACTX_PROJECT_ROOT',
              type=click.Path(exists=True, file_okay=False), help='Root of the Java project')
@click.option('--config-file', '-c', default=None, envvar='JAVACTX_CONFIG',
              type=click.Path(exists=True, dir_okay=False), help='Engine configuration JSON file')
@click.option('--timeout', default=30.0, envvar='JAVACTX_TIMEOUT', type=float,
              help='Per-request timeout in seconds')
@click.option('--verbose', '-v', is_flag=True, help='Show engine progress logs')
@click.pass_context
def cli(ctx, project_root, config_file, timeout, verbose):
    """javactx - semantic context for Java/Spring code bases."""
    if verbose:
        logging.getLogger("javactx").setLevel(logging.DEBUG)
    ctx.obj = {
        "config": load_config(project_root, config_file),
        "timeout": timeout,
    }


@cli.command()
@click.pass_context
def serve(ctx):
    """Run the engine in the foreground over stdin/stdout."""
    from javactx.engine.engine import AnalysisEngine
    from javactx.engine.worker import serve as serve_requests

    config = ctx.obj["config"]
    logging.getLogger("javactx").setLevel(logging.INFO)
    serve_requests(AnalysisEngine(config), sys.stdin, sys.stdout, sys.stderr)


@cli.command()
@click.argument('symbol_name')
@click.argument('context_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--line', '-l', type=int, default=None, help='Line the symbol is used on')
@click.pass_context
def resolve(ctx, symbol_name, context_file, line):
    """Resolve SYMBOL_NAME as seen from CONTEXT_FILE."""
    params = {"symbolName": symbol_name, "contextFile": os.path.abspath(context_file)}
    if line is not None:
        params["line"] = line
    result = run_operation(ctx.obj["config"], "resolve_symbol", params, ctx.obj["timeout"])

    console.print(f"[cyan]{symbol_name}[/cyan] -> [green]{result['resolvedType']}[/green] "
                  f"({result['declarationKind']})")
    site = result["declarationSite"]
    console.print(f"Declared at {site['file']}:{site['line']}")
    if result.get("codeContext"):
        console.print(result["codeContext"], markup=False, highlight=False)


@cli.command()
@click.argument('class_name')
@click.option('--max-depth', '-d', type=int, default=None, help='Maximum nesting depth')
@click.option('--annotations/--no-annotations', default=True, help='Include annotation details')
@click.pass_context
def structure(ctx, class_name, max_depth, annotations):
    """Show the recursive field structure of CLASS_NAME."""
    params = {"className": class_name, "includeAnnotations": annotations}
    if max_depth is not None:
        params["maxDepth"] = max_depth
    result = run_operation(ctx.obj["config"], "get_type_structure", params, ctx.obj["timeout"])
    console.print_json(json.dumps(result))


@cli.command()
@click.argument('class_name')
@click.argument('method_name')
@click.option('--max-depth', '-d', type=int, default=None, help='Maximum call depth')
@click.option('--boundary', '-b', multiple=True, help='Boundary package glob (repeatable)')
@click.pass_context
def chain(ctx, class_name, method_name, max_depth, boundary):
    """Trace the call chain of CLASS_NAME.METHOD_NAME."""
    params = {"className": class_name, "methodName": method_name}
    if max_depth is not None:
        params["maxDepth"] = max_depth
    if boundary:
        params["boundaryPatterns"] = list(boundary)
    result = run_operation(ctx.obj["config"], "build_call_chain", params, ctx.obj["timeout"])

    def show(node, indent=0):
        marker = ""
        if node.get("boundaryHit"):
            marker = " [yellow](boundary)[/yellow]"
        elif not node.get("resolved", True):
            marker = " [red](unresolved)[/red]"
        elif node.get("terminal"):
            marker = f" [magenta]({node['terminal']['kind']})[/magenta]"
        target = node.get("callee") or node["calleeName"]
        console.print(f"{'  ' * indent}{target}{marker}")
        for child in node.get("children", []):
            show(child, indent + 1)

    show(result)


@cli.command()
@click.argument('method_file', type=click.File('r'))
@click.pass_context
def branches(ctx, method_file):
    """Analyze branches of the method source in METHOD_FILE ('-' for stdin)."""
    params = {"methodSource": method_file.read()}
    result = run_operation(ctx.obj["config"], "analyze_branches", params, ctx.obj["timeout"])

    branch_table = Table(title="Branches")
    branch_table.add_column("Line", style="cyan")
    branch_table.add_column("Kind", style="green")
    branch_table.add_column("Description")
    branch_table.add_column("Paths")
    branch_table.add_column("Nesting")
    branch_table.add_column("Code")
    for branch in result["branches"]:
        branch_table.add_row(
            str(branch["startLine"]), branch["kind"], branch["description"],
            "\n".join(branch["paths"]), str(branch["nestingLevel"]), branch["codeSnippet"],
        )
    console.print(branch_table)
    console.print(f"[cyan]Cyclomatic complexity:[/cyan] {result['cyclomaticComplexity']} "
                  f"({result['complexityLevel']})")
    console.print(f"[cyan]Max nesting depth:[/cyan] {result['maxNestingDepth']}")
    console.print(f"[cyan]Total paths:[/cyan] {result['totalPaths']}")
    console.print(f"[cyan]Minimum tests:[/cyan] {result['minimumTests']}")
    for recommendation in result["testRecommendations"]:
        console.print(f"  [green]{recommendation['testMethodName']}[/green]: {recommendation['scenario']}")


@cli.command()
@click.argument('class_name')
@click.argument('method_name')
@click.option('--body/--no-body', default=True, help='Include the method body')
@click.pass_context
def definition(ctx, class_name, method_name, body):
    """Show every overload of CLASS_NAME.METHOD_NAME."""
    params = {"className": class_name, "methodName": method_name, "includeBody": body}
    result = run_operation(ctx.obj["config"], "get_function_definition", params, ctx.obj["timeout"])
    console.print_json(json.dumps(result))


@cli.command()
@click.argument('class_name')
@click.pass_context
def mocks(ctx, class_name):
    """List the dependencies of CLASS_NAME a unit test should provide."""
    result = run_operation(
        ctx.obj["config"], "find_mockable_dependencies", {"className": class_name}, ctx.obj["timeout"]
    )

    dep_table = Table(title=f"Dependencies of {result['className']}")
    dep_table.add_column("Name", style="cyan")
    dep_table.add_column("Type")
    dep_table.add_column("Injection")
    dep_table.add_column("Kind")
    dep_table.add_column("Strategy", style="green")
    dep_table.add_column("Reason")
    for dep in result["fieldDependencies"] + result["constructorDependencies"]:
        dep_table.add_row(
            dep["name"], dep["type"], dep["injection"], dep["dependencyType"],
            dep["mockStrategy"], dep["reason"],
        )
    console.print(dep_table)
    console.print(f"[green]{result['dependenciesToMock']} of {result['totalDependencies']} "
                  f"dependencies should be mocked.[/green]")


if __name__ == '__main__':
    cli()
