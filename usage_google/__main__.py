"""
Entry point for running usage-google as a module: python -m usage_google
"""

from usage_google.cli.commands import app

if __name__ == "__main__":
    app()
