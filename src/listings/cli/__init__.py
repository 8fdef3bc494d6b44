"""Command line entry point: ``listings``.

    listings serve --port 3000
    listings cache keys "property:*"
    listings cache invalidate "properties:search:*"
    listings cache flush --yes
"""

import typer

from listings.cli.cache_cmd import app as cache_app
from listings.cli.serve import app as serve_app

app = typer.Typer(
    name="listings",
    help="Property listings API with a Redis cache layer",
    no_args_is_help=True,
)
app.add_typer(serve_app, name="serve")
app.add_typer(cache_app, name="cache")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
