from __future__ import annotations

from cronos_guard.cli import main

main()
