"""Management commands for the isolation policies.

Run via: python -m okrguard.manage install|reset|verify
"""

import argparse
import asyncio
import logging
import sys

from okrguard.config import configure_logging
from okrguard.exceptions import PolicyInstallError
from okrguard.modules.tenancy.installer import install_policies, reset_policies, verify_policies

logger = logging.getLogger(__name__)


def _install() -> int:
    try:
        asyncio.run(install_policies())
    except PolicyInstallError as exc:
        logger.error("Install failed: %s", exc)
        return 1
    print("Row level security policies installed.")
    return 0


def _reset() -> int:
    report = asyncio.run(reset_policies())
    print(f"Reset {len(report.reset_tables)} tables.")
    for table, error in sorted(report.failures.items()):
        print(f"  FAILED {table}: {error}")
    return 0 if report.ok else 1


def _verify() -> int:
    status = asyncio.run(verify_policies())
    if status.healthy:
        print("All isolation policies present.")
        return 0
    for name in status.missing_policies:
        print(f"  missing policy: {name}")
    for table in status.tables_without_rls:
        print(f"  row level security not forced: {table}")
    return 1


COMMANDS = {
    "install": _install,
    "reset": _reset,
    "verify": _verify,
}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="okrguard.manage", description=__doc__.splitlines()[0])
    parser.add_argument("command", choices=sorted(COMMANDS))
    args = parser.parse_args(argv)

    configure_logging()
    return COMMANDS[args.command]()


if __name__ == "__main__":
    sys.exit(main())
