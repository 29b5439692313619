"""
jsonsql CLI - Query JSON files with SQL

Usage:
    jsonsql query "<sql>" [options]
    jsonsql tables
    jsonsql add-mapping <alias> <mapping>
    jsonsql save-query <name> "<sql>"
    jsonsql run-query <name> [--param name=value]...
"""

import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import click

from jsonsql import __version__
from jsonsql.cli.formatters import get_formatter
from jsonsql.config.mappings import DEFAULT_MAPPINGS_FILE, MappingManager
from jsonsql.config.parameters import extract_parameter_names, has_parameters, parse_param_options
from jsonsql.config.saved_queries import DEFAULT_QUERIES_FILE, QueryStore
from jsonsql.core.query import Query


@dataclass
class Settings:
    """Options given to the command group, shared by every command"""

    data_dir: str
    config_file: str
    queries_file: str
    debug: bool = False

    def mappings(self) -> MappingManager:
        return MappingManager(self.config_file)

    def queries(self) -> QueryStore:
        return QueryStore(self.queries_file)


pass_settings = click.make_pass_decorator(Settings)


@contextmanager
def handle_errors(settings: Settings):
    """Print failures as 'Error: ...' and exit 1 (re-raise with --debug)"""
    try:
        yield
    except click.ClickException:
        raise
    except FileNotFoundError as e:
        click.echo(f"Error: File not found - {e}", err=True)
        if settings.debug:
            raise
        sys.exit(1)
    except KeyError as e:
        # KeyError wraps its message in quotes
        click.echo(f"Error: {e.args[0] if e.args else e}", err=True)
        if settings.debug:
            raise
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        if settings.debug:
            raise
        sys.exit(1)


def output_options(func):
    """Options shared by commands that run a query"""
    options = [
        click.option(
            "--param",
            "-p",
            "params",
            multiple=True,
            metavar="NAME=VALUE",
            help="Value for a ${name} placeholder (repeatable)",
        ),
        click.option(
            "--format",
            "-f",
            "fmt",
            type=click.Choice(["json", "table"], case_sensitive=False),
            default="json",
            help="Output format (default: json)",
        ),
        click.option("--pretty", is_flag=True, help="Pretty-print JSON output"),
        click.option(
            "--output",
            "-o",
            type=click.Path(dir_okay=False),
            default=None,
            help="Write output to file instead of stdout",
        ),
        click.option("--clipboard", is_flag=True, help="Copy output to the clipboard instead of stdout"),
        click.option("--explain", is_flag=True, help="Show query execution plan instead of results"),
        click.option("--time", "-t", "show_time", is_flag=True, help="Show execution time"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def copy_to_clipboard(text: str) -> None:
    try:
        import pyperclip
    except ImportError:
        raise click.ClickException("Clipboard output requires pyperclip. Install `jsonsql[clipboard]`")

    pyperclip.copy(text)


def run_sql(
    settings: Settings,
    sql: str,
    params: tuple[str, ...],
    fmt: str,
    pretty: bool,
    output: Optional[str],
    clipboard: bool,
    explain: bool,
    show_time: bool,
) -> None:
    """Execute SQL text and write the result where the options say"""
    start_time = time.time()

    q = Query(settings.data_dir, settings.mappings())
    result = q.sql(sql, parse_param_options(params))

    if explain:
        click.echo(result.explain())
        return

    rows = result.to_list()
    formatter = get_formatter(fmt.lower())

    if formatter.for_terminal:
        output_text = formatter.format(
            rows,
            no_color=bool(output) or clipboard or not sys.stdout.isatty(),
            show_footer=not (output or clipboard),
        )
    else:
        output_text = formatter.format(rows, pretty=pretty)

    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(output_text + "\n", encoding="utf-8")
        click.echo(f"Results written to {output} ({fmt} format)", err=True)
    if clipboard:
        copy_to_clipboard(output_text)
        click.echo("Output copied to clipboard", err=True)
    if not output and not clipboard:
        click.echo(output_text)

    if show_time:
        elapsed = time.time() - start_time
        click.echo(f"Processed {len(rows)} row{'s' if len(rows) != 1 else ''} in {elapsed:.3f}s", err=True)


@click.group()
@click.version_option(version=__version__, prog_name="jsonsql")
@click.option(
    "--data-dir",
    "-d",
    envvar="JSONSQL_DATA_DIR",
    type=click.Path(file_okay=False),
    default=".",
    show_default=True,
    help="Directory containing JSON files",
)
@click.option(
    "--config",
    "-c",
    "config_file",
    envvar="JSONSQL_CONFIG",
    type=click.Path(dir_okay=False),
    default=DEFAULT_MAPPINGS_FILE,
    show_default=True,
    help="Table mapping file",
)
@click.option(
    "--queries-file",
    envvar="JSONSQL_QUERIES",
    type=click.Path(dir_okay=False),
    default=DEFAULT_QUERIES_FILE,
    show_default=True,
    help="Saved queries file",
)
@click.option("--debug", is_flag=True, help="Show full tracebacks on errors")
@click.pass_context
def cli(ctx: click.Context, data_dir: str, config_file: str, queries_file: str, debug: bool):
    """
    jsonsql - Query JSON files with SQL

    Tables are JSON files in the data directory, or mapped to a file,
    directory or URL plus a path expression with add-mapping.
    """
    ctx.obj = Settings(data_dir, config_file, queries_file, debug)


@cli.command()
@click.argument("sql", type=str, required=False)
@click.option(
    "--sql-file",
    "-q",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Read SQL query from file",
)
@output_options
@pass_settings
def query(
    settings: Settings,
    sql: Optional[str],
    sql_file: Optional[str],
    params: tuple[str, ...],
    fmt: str,
    pretty: bool,
    output: Optional[str],
    clipboard: bool,
    explain: bool,
    show_time: bool,
):
    """
    Execute a SQL query

    Examples:

        \b
        # Query data/products.json
        $ jsonsql -d data query "SELECT name, price FROM products WHERE price > 20"

        \b
        # Join two tables, as a table
        $ jsonsql query "SELECT o.id, p.name FROM orders o JOIN products p ON o.productId = p.id" -f table

        \b
        # One row per array element
        $ jsonsql query "SELECT name, tag FROM products, UNNEST(tags) AS t(tag)"

        \b
        # Placeholders
        $ jsonsql query "SELECT * FROM products WHERE price > ${min:10}" --param min=25

        \b
        # Read SQL from file, save pretty JSON
        $ jsonsql query -q report.sql --pretty -o out/report.json

        \b
        # Copy the result to the clipboard
        $ jsonsql query "SELECT * FROM products" --pretty --clipboard
    """
    if sql_file:
        sql = Path(sql_file).read_text(encoding="utf-8").strip()
    elif not sql:
        raise click.UsageError("Provide a SQL query or --sql-file")

    with handle_errors(settings):
        run_sql(settings, sql, params, fmt, pretty, output, clipboard, explain, show_time)


@cli.command()
@pass_settings
def tables(settings: Settings):
    """Show all configured table mappings"""
    with handle_errors(settings):
        mappings = settings.mappings().list()

        if not mappings:
            click.echo("No mappings configured.")
            click.echo("Add a mapping using: jsonsql add-mapping <alias> <mapping>")
            return

        width = max(len(alias) for alias in mappings)
        click.echo("Configured table mappings:")
        for alias, mapping in mappings.items():
            click.echo(f"  {alias:<{width}}  ->  {mapping}")
        click.echo(f"Total: {len(mappings)} mapping(s)")


@cli.command("add-mapping")
@click.argument("alias")
@click.argument("mapping")
@pass_settings
def add_mapping(settings: Settings, alias: str, mapping: str):
    """
    Map a table alias to a JSON source and path expression

    Examples:

        \b
        $ jsonsql add-mapping orders '$.orders'
        $ jsonsql add-mapping orders 'shop.json:$.data.orders'
        $ jsonsql add-mapping events 'logs/:$[*]'
    """
    with handle_errors(settings):
        settings.mappings().add(alias, mapping)
        click.echo(f"Added mapping: {alias} -> {mapping}")


@cli.command("remove-mapping")
@click.argument("alias")
@pass_settings
def remove_mapping(settings: Settings, alias: str):
    """Remove a table mapping"""
    with handle_errors(settings):
        settings.mappings().remove(alias)
        click.echo(f"Removed mapping: {alias}")


@cli.command("save-query")
@click.argument("name")
@click.argument("sql")
@pass_settings
def save_query(settings: Settings, name: str, sql: str):
    """Save a query under a name; it may contain ${name:default} placeholders"""
    with handle_errors(settings):
        settings.queries().save(name, sql)
        click.echo(f"Saved query '{name}'")
        if has_parameters(sql):
            click.echo(f"Parameters: {', '.join(extract_parameter_names(sql))}")


@cli.command("run-query")
@click.argument("name")
@output_options
@pass_settings
def run_query(
    settings: Settings,
    name: str,
    params: tuple[str, ...],
    fmt: str,
    pretty: bool,
    output: Optional[str],
    clipboard: bool,
    explain: bool,
    show_time: bool,
):
    """Execute a saved query by name"""
    with handle_errors(settings):
        sql = settings.queries().get(name)
        if sql is None:
            raise KeyError(f"Query not found: {name}")
        run_sql(settings, sql, params, fmt, pretty, output, clipboard, explain, show_time)


@cli.command("list-queries")
@pass_settings
def list_queries(settings: Settings):
    """Show all saved queries"""
    with handle_errors(settings):
        queries = settings.queries().list()

        if not queries:
            click.echo("No saved queries.")
            click.echo("Save one using: jsonsql save-query <name> <sql>")
            return

        click.echo("Saved queries:")
        for name, sql in queries.items():
            click.echo(f"  {name}: {sql}")
            if has_parameters(sql):
                click.echo(f"    parameters: {', '.join(extract_parameter_names(sql))}")
        click.echo(f"Total: {len(queries)} quer{'y' if len(queries) == 1 else 'ies'}")


@cli.command("delete-query")
@click.argument("name")
@pass_settings
def delete_query(settings: Settings, name: str):
    """Delete a saved query"""
    with handle_errors(settings):
        settings.queries().delete(name)
        click.echo(f"Deleted query '{name}'")


if __name__ == "__main__":
    cli()
