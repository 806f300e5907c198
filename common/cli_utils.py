import json
import sys
from enum import Enum

import typer
import yaml


class TyperOutputFormat(str, Enum):
    yaml = "yaml"
    json = "json"
    raw = "raw"


def default_print_retval(ret: dict | list | str | None, output_format: TyperOutputFormat, **kwargs):
    # Provisioning commands report progress as they go and return nothing
    if ret is None:
        return

    if output_format == TyperOutputFormat.yaml:
        print(yaml.safe_dump(ret, default_flow_style=False, sort_keys=False))
    elif output_format == TyperOutputFormat.json:
        print(json.dumps(ret, indent=2))
    elif output_format == TyperOutputFormat.raw:
        sys.stdout.write(ret if isinstance(ret, str) else json.dumps(ret))


def get_app(default_output_format: TyperOutputFormat = TyperOutputFormat.yaml, print_retval_fn=None):
    if print_retval_fn is None:
        print_retval_fn = default_print_retval

    app = typer.Typer(result_callback=print_retval_fn)

    @app.callback()
    def default_callback(output_format: TyperOutputFormat = default_output_format):
        pass

    return app

def fail(error: Exception):
    print(f"Error: {error}", file=sys.stderr)
    raise typer.Exit(code=1)
