"""
`lockfix` / `lockfix fix`: audit a project and apply the safe remediations.

Report mode prints the advisory service's findings and exits non-zero when any
vulnerability is found. Fix mode classifies the suggested actions and runs a
targeted reinstall for the automatic ones; breaking and manual-review items are
only reported.
"""
import logging
import os
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from rich.console import Console

from lockfix.config import Settings
from lockfix.core.classifier import classify
from lockfix.core.installer import Installer, targeted_installer
from lockfix.core.model import ActionPlan, AuditReport
from lockfix.core.report import generate, print_full_report, submit_for_full_report
from lockfix.errors import (
    AuditGlobalError,
    InvalidSubcommandError,
    LockVerifyError,
    NoLockfileError,
    NoManifestError,
)
from lockfix.managers import detect_manager
from lockfix.managers.javascript import MANIFEST, NodeManager

USAGE = "lockfix\nlockfix fix\n"


def validate_args(args: List[str], settings: Settings) -> Optional[str]:
    """Returns the subcommand (None for report mode)."""
    if settings.global_mode:
        raise AuditGlobalError()
    if args and args[0] != "fix":
        raise InvalidSubcommandError(args[0], USAGE)
    return args[0] if args else None


async def request_report(
    settings: Settings,
    where: str = ".",
    manager: Optional[NodeManager] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Tuple[AuditReport, Dict[str, Any]]:
    """Validates the project on disk and fetches its audit report."""
    if manager is None:
        manager = detect_manager(where)
    if manager is None:
        if not os.path.exists(os.path.join(where, MANIFEST)):
            raise NoManifestError()
        raise NoLockfileError()

    manifest = manager.maybe_read_file(where, MANIFEST)
    lock_data, lock_file = manager.read_lock_data(where)
    if manifest is None:
        raise NoManifestError()
    if lock_data is None:
        raise NoLockfileError()

    errors = manager.verify(manifest, lock_data)
    if errors:
        raise LockVerifyError(lock_file, errors)

    requires = manager.requires_map(manifest)
    logging.debug(f"Auditing {lock_file} with {len(requires)} declared dependencies")
    report = await submit_for_full_report(generate(lock_data, requires), settings, transport=transport)
    return report, manifest


def announce(plan: ActionPlan) -> None:
    """Warns about everything that will not be fixed automatically."""
    if plan.major:
        logging.warning("some security updates involve breaking changes")
        logging.warning("and will not be updated automatically.")
        logging.warning("To update them yourself, run:")
        logging.warning("")
        logging.warning(f"npm install {' '.join(plan.major)}")
        logging.warning("")
    if plan.review:
        logging.warning("some vulnerabilities require manual review")
        logging.warning("run `lockfix` to view the full report")


async def fix(
    plan: ActionPlan,
    settings: Settings,
    where: str = ".",
    installer_factory: Callable[..., Installer] = targeted_installer,
) -> int:
    if plan.is_empty():
        logging.info("nothing to fix")
        return 0

    announce(plan)

    if not (plan.install or plan.update):
        logging.info("no automatic fixes available, nothing to install")
        return 0

    logging.info(
        f"installing {len(plan.install) + len(plan.update)} updated packages with patched vulnerabilities"
    )
    installer = installer_factory(
        where,
        settings.dry_run,
        plan.install_args(),
        {"deep_args": plan.deep_args()},
        npm_command=settings.npm_command,
    )
    return await installer.run()


async def audit_cmd(
    args: List[str],
    settings: Settings,
    where: str = ".",
    transport: Optional[httpx.AsyncBaseTransport] = None,
    installer_factory: Callable[..., Installer] = targeted_installer,
    console: Optional[Console] = None,
) -> int:
    """Runs one audit and returns the process exit status."""
    subcommand = validate_args(args, settings)
    report, manifest = await request_report(settings, where, transport=transport)

    if subcommand == "fix":
        plan = classify(report.actions, root_name=manifest.get("name"))
        return await fix(plan, settings, where, installer_factory)

    print_full_report(report, console)
    return 1 if report.vulnerability_count() > 0 else 0
