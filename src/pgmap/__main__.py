# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""CLI entry point for ``python -m pgmap``.

Usage:
    python -m pgmap --help
    python -m pgmap status --db app.db --migrations myapp.schema:MIGRATIONS
    python -m pgmap upgrade --db postgresql://app@db/app -m myapp.schema:MIGRATIONS
"""

from .cli import main

if __name__ == "__main__":
    main()
