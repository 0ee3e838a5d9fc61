"""
Schema command for CLI.

Prints the compiled validator of a collection.

This module is part of REVIEW_STORE.
"""

import click

from ...exceptions import SchemaDefinitionError
from ...schemas import validator_for
from ..utils import format_json


@click.command()
@click.argument("name")
def schema(name: str) -> None:
    """
    Print the ``$jsonSchema`` validator for collection NAME.

    Examples:
        review-store schema customer
    """
    try:
        validator = validator_for(name)
    except SchemaDefinitionError as e:
        raise click.ClickException(str(e)) from e
    click.echo(format_json(validator))
