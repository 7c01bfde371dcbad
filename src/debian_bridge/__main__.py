"""Entry point for ``python -m debian_bridge``."""

from debian_bridge.cli.app import app

if __name__ == "__main__":
    app()
