from __future__ import annotations

from scrisurv.cli.bundle import installed_version


def cmd_version(args) -> int:
    print(installed_version())
    return 0
