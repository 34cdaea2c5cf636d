# src/icd_toolkit/cli.py
import logging
from pathlib import Path

import click
import pandas as pd

from icd_toolkit.code import CodeForm
from icd_toolkit.comorbidity import BUILTIN_MAPS, ComorbidityMap, assign_comorbidities, charlson_score
from icd_toolkit.condense import condense as condense_codes, explain_code
from icd_toolkit.config import ParseOptions, build_registry, create_default_config, get_parse_options, load_config
from icd_toolkit.convert import convert_codes
from icd_toolkit.hierarchy import Hierarchy
from icd_toolkit.registry import MapRegistry, init_builtin_maps
from icd_toolkit.validity import is_valid

KIND_CHOICE = click.Choice(["icd9", "icd10", "infer"])
FORM_CHOICE = click.Choice(["short", "decimal", "infer"])


class Context:
    def __init__(self, options: ParseOptions, registry: MapRegistry):
        self.options = options
        self.registry = registry


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None,
              help="YAML config with parse options and reference data")
@click.option("-v", "--verbose", is_flag=True, help="Log progress to stderr")
@click.pass_context
def cli(ctx, config_path, verbose):
    """ICD-9 / ICD-10 code toolkit CLI"""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")
    if config_path:
        cfg = load_config(config_path)
        ctx.obj = Context(get_parse_options(cfg), build_registry(cfg))
    else:
        ctx.obj = Context(ParseOptions(), init_builtin_maps())


def _hints(ctx_obj: Context, kind, form):
    opts = ctx_obj.options.as_kwargs()
    return (kind or opts["kind"]), (form or opts["form"])


def _resolve_hierarchy(ctx_obj: Context, hierarchy: str, kind: str) -> Hierarchy:
    if ctx_obj.registry.has_hierarchy(hierarchy):
        return ctx_obj.registry.get_hierarchy(hierarchy)
    if not Path(hierarchy).exists():
        raise click.BadParameter(f"'{hierarchy}' is neither a configured hierarchy nor a file",
                                 param_hint="--hierarchy")
    if kind in (None, "infer"):
        raise click.BadParameter("--kind is required with a hierarchy file", param_hint="--kind")
    return Hierarchy.from_file(hierarchy, kind=kind)


@cli.command()
@click.argument("codes", nargs=-1, required=True)
@click.option("--to", "target", type=click.Choice(["short", "decimal"]), default="short", show_default=True)
@click.option("--kind", type=KIND_CHOICE, default=None)
@click.option("--form", type=FORM_CHOICE, default=None)
@click.pass_obj
def convert(obj, codes, target, kind, form):
    """Convert codes between short and decimal form."""
    kind, form = _hints(obj, kind, form)
    result = convert_codes(codes, to=target, kind=kind, form=form)
    for raw, value in zip(codes, result.values):
        click.echo(f"{raw}\t{value if value is not None else 'ERROR'}")
    for err in result.errors:
        click.echo(f"error: {err.raw}: {err.error}", err=True)
    if result.errors:
        raise SystemExit(1)


@cli.command()
@click.argument("codes", nargs=-1, required=True)
@click.option("--kind", type=KIND_CHOICE, default=None)
@click.option("--form", type=FORM_CHOICE, default=None)
@click.pass_obj
def validate(obj, codes, kind, form):
    """Report whether each code is valid."""
    kind, form = _hints(obj, kind, form)
    for code in codes:
        click.echo(f"{code}\t{'valid' if is_valid(code, kind=kind, form=form) else 'invalid'}")


@cli.command()
@click.argument("codes", nargs=-1, required=True)
@click.option("--hierarchy", required=True, help="Configured hierarchy name or reference CSV")
@click.option("--kind", type=KIND_CHOICE, default=None)
@click.option("--to", "target", type=click.Choice(["short", "decimal"]), default="short", show_default=True)
@click.option("--defined-only", is_flag=True, help="Drop undefined codes without reporting them")
@click.pass_obj
def condense(obj, codes, hierarchy, kind, target, defined_only):
    """Condense codes to their minimal covering set."""
    kind, _ = _hints(obj, kind, None)
    ref = _resolve_hierarchy(obj, hierarchy, kind)
    result = condense_codes(codes, ref, defined_only=defined_only, warn=False)
    for code in result.to_list(form=CodeForm(target)):
        click.echo(code)
    for code in result.undefined:
        click.echo(f"undefined: {code}", err=True)
    for err in result.errors:
        click.echo(f"error: {err.raw}: {err.error}", err=True)


@cli.command()
@click.argument("codes", nargs=-1, required=True)
@click.option("--hierarchy", required=True, help="Configured hierarchy name or reference CSV")
@click.option("--kind", type=KIND_CHOICE, default=None)
@click.option("--condense/--no-condense", "do_condense", default=True, show_default=True)
@click.pass_obj
def explain(obj, codes, hierarchy, kind, do_condense):
    """Describe codes using a reference hierarchy."""
    kind, _ = _hints(obj, kind, None)
    ref = _resolve_hierarchy(obj, hierarchy, kind)
    result = explain_code(codes, ref, condense_codes=do_condense, warn=False)
    if len(result.table):
        click.echo(result.table.to_string(index=False))
    for code in result.undefined:
        click.echo(f"undefined: {code}", err=True)
    for err in result.errors:
        click.echo(f"error: {err.raw}: {err.error}", err=True)


@cli.command()
@click.option("--input", "input_path", type=click.Path(exists=True, dir_okay=False), required=True,
              help="CSV or parquet with one row per visit/code")
@click.option("--map", "map_name", default="charlson_quan_icd9", show_default=True,
              help=f"Registered map name (bundled: {', '.join(BUILTIN_MAPS)}) or YAML file")
@click.option("--visit-col", default="visit_id", show_default=True)
@click.option("--code-col", default="code", show_default=True)
@click.option("--output", "output_path", type=click.Path(dir_okay=False), default=None,
              help="CSV or parquet output; printed when omitted")
@click.option("--score", is_flag=True, help="Add the Charlson index column")
@click.option("--progress/--no-progress", default=True, help="Show progress bar")
@click.pass_obj
def comorbid(obj, input_path, map_name, visit_col, code_col, output_path, score, progress):
    """Flag comorbidity categories per visit."""
    if obj.registry.has_map(map_name):
        cmap = obj.registry.get_map(map_name)
    elif Path(map_name).exists():
        cmap = ComorbidityMap.from_yaml(map_name)
    else:
        raise click.BadParameter(f"'{map_name}' is neither a registered map nor a file", param_hint="--map")

    input_path = Path(input_path)
    if input_path.suffix == ".parquet":
        records = pd.read_parquet(input_path)
    else:
        records = pd.read_csv(input_path, dtype={code_col: str})

    result = assign_comorbidities(records, cmap, visit_col=visit_col, code_col=code_col,
                                  show_progress=progress)
    matrix = result.matrix
    if score:
        matrix = matrix.assign(charlson=charlson_score(matrix, weights=cmap.weights or None))

    click.echo(f"Flagged {len(matrix):,} visits with {len(cmap)} categories", err=True)
    for err in result.errors[:20]:
        click.echo(f"error: row {err.index}: {err.raw}: {err.error}", err=True)
    if len(result.errors) > 20:
        click.echo(f"... {len(result.errors) - 20} more errors", err=True)

    if output_path is None:
        click.echo(matrix.astype(int).to_csv())
        return

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.suffix == ".parquet":
        matrix.to_parquet(output_path)
    else:
        matrix.to_csv(output_path)
    click.echo(f"Saved to {output_path}", err=True)


@cli.command("init-config")
@click.argument("path", type=click.Path(dir_okay=False))
def init_config(path):
    """Write a default configuration file."""
    create_default_config(path)
    click.echo(f"Config at {path}")


if __name__ == "__main__":
    cli()
