"""Main CLI application using Cyclopts."""

import cyclopts

from imgsync.cli.commands import run

app = cyclopts.App(
    name="imgsync",
    help="imgsync - keep container images present, patched and signed across registries",
)

app.command(run.app, name="run")
app.command(run.check, name="check")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
