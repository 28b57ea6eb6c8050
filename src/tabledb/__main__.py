# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""CLI entry point for tabledb (python -m tabledb).

Usage:
    tabledb --help
    tabledb --db /data/app.db schema users
    tabledb rows users --limit 10
"""

from .cli import cli


def main() -> None:
    """CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
