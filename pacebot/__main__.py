"""Entry point for `python -m pacebot`."""

from pacebot.cli.commands import app

if __name__ == "__main__":
    app()
