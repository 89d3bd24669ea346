import logging
import platform
import sys
from typing import Any, Dict, Optional

import httpx
from rich.console import Console
from rich.table import Table

from lockfix.__version__ import __version__
from lockfix.config import Settings
from lockfix.core.model import AuditReport, DependencyNode
from lockfix.errors import AuditRequestError, AuditUnsupportedError

AUDIT_ENDPOINT = "-/npm/v1/security/audits"

SEVERITY_STYLES = {
    "info": "dim",
    "low": "cyan",
    "moderate": "yellow",
    "high": "red",
    "critical": "bold red",
}


def generate(lock_data: Dict[str, Any], requires: Dict[str, str]) -> Dict[str, Any]:
    """Builds the audit request body from lockfile data and manifest requirements."""
    return {
        "name": lock_data.get("name"),
        "version": lock_data.get("version"),
        "requires": dict(requires),
        "dependencies": _strip_dependencies(lock_data.get("dependencies") or {}),
        "install": [],
        "remove": [],
        "metadata": {
            "lockfix_version": __version__,
            "python_version": platform.python_version(),
            "platform": sys.platform,
        },
    }


def _strip_dependencies(dependencies: Dict[str, Any]) -> Dict[str, Any]:
    stripped = {}
    for name, entry in dependencies.items():
        item = {"version": entry.get("version", "")}
        for key in ("integrity", "dev", "optional", "bundled"):
            if key in entry:
                item[key] = entry[key]
        if isinstance(entry.get("requires"), dict):
            item["requires"] = dict(entry["requires"])
        if entry.get("dependencies"):
            item["dependencies"] = _strip_dependencies(entry["dependencies"])
        stripped[name] = item
    return stripped


async def submit_for_full_report(
    payload: Dict[str, Any],
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AuditReport:
    """
    Posts the audit payload to the configured registry and returns the parsed report.
    Registries answering 404 or 5xx are treated as not supporting audits.
    """
    url = settings.registry.rstrip("/") + "/" + AUDIT_ENDPOINT
    logging.info(f"Requesting audit report from {url}")

    async with httpx.AsyncClient(timeout=settings.audit_timeout, transport=transport) as client:
        try:
            response = await client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404 or status >= 500:
                raise AuditUnsupportedError(settings.registry, wrapped=e) from e
            raise AuditRequestError(f"Audit request failed with status {status}", wrapped=e) from e
        except httpx.HTTPError as e:
            raise AuditRequestError(f"Audit request failed: {e}", wrapped=e) from e

        try:
            data = response.json()
        except ValueError as e:
            raise AuditRequestError("Audit endpoint returned an invalid response", wrapped=e) from e

    report = AuditReport.from_dict(data)
    logging.debug(f"Report received: {len(report.actions)} actions, {len(report.advisories)} advisories")
    return report


def enrich_tree(root: DependencyNode, report: AuditReport) -> int:
    """Flags the nodes reached by each advisory path. Returns how many were flagged."""
    flagged = set()

    for action in report.actions:
        for vuln in action.resolves:
            chain = vuln.path.split(">")
            if len(chain) > 1 and chain[0] == root.name:
                chain = chain[1:]

            node = root
            for name in chain:
                node = node.find(name)
                if node is None:
                    logging.debug(f"Advisory path '{vuln.path}' is not in the tree")
                    break
            if node is None or node is root:
                continue

            advisory = dict(report.advisories.get(str(vuln.id), {}))
            advisory.setdefault("id", vuln.id)
            if all(d.get("id") != advisory["id"] for d in node.vuln_details):
                node.vuln_details.append(advisory)
            node.vulnerable = True
            node.vuln_summary = summarize(node)
            flagged.add(id(node))

    return len(flagged)


def summarize(node: DependencyNode) -> str:
    count = len(node.vuln_details)
    if count == 0:
        return "Vulnerable"
    first = node.vuln_details[0]
    return f"{count} advisories (e.g. {first.get('title') or first.get('id')})"


def print_full_report(report: AuditReport, console: Optional[Console] = None) -> None:
    console = console or Console()

    if report.advisories:
        table = Table(title="lockfix security audit", show_lines=True)
        table.add_column("Severity")
        table.add_column("Package")
        table.add_column("Title")
        table.add_column("Patched in")
        table.add_column("Path")

        for advisory in report.advisories.values():
            severity = advisory.get("severity", "info")
            paths = [p for f in advisory.get("findings", []) for p in f.get("paths", [])]
            path_text = paths[0] if paths else ""
            if len(paths) > 1:
                path_text += f" (+{len(paths) - 1} more)"
            table.add_row(
                f"[{SEVERITY_STYLES.get(severity, '')}]{severity}[/]",
                advisory.get("module_name", ""),
                advisory.get("title", ""),
                advisory.get("patched_versions", ""),
                path_text,
            )
        console.print(table)

    total = report.vulnerability_count()
    scanned = report.dependencies + report.dev_dependencies
    if total == 0:
        console.print(f"found [green]0[/] vulnerabilities in {scanned} scanned packages")
        return

    parts = [
        f"[{SEVERITY_STYLES[sev]}]{report.vulnerabilities[sev]} {sev}[/]"
        for sev in ("low", "moderate", "high", "critical")
        if report.vulnerabilities.get(sev)
    ]
    console.print(f"found [red]{total}[/] vulnerabilities ({', '.join(parts)}) in {scanned} scanned packages")
    if report.actions:
        console.print("  run `lockfix fix` to fix them, or review them manually")
