"""CLI entry point for photoai.cli module.

Enables execution via: python -m photoai.cli
"""

from photoai.cli.grant_credits import main

if __name__ == "__main__":
    main()
