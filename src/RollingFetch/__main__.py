"""Allow ``python -m RollingFetch``."""

from RollingFetch.cli import app

if __name__ == "__main__":
    app()
