import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from lockfix.core.patcher import patch_all
from lockfix.errors import InstallError
from lockfix.managers.javascript import MANIFEST, LockTree, NodeManager


async def spawn(command: str, args: List[str], cwd: str) -> int:
    logging.debug(f"Running {command} {' '.join(args)} in {cwd}")
    try:
        process = await asyncio.create_subprocess_exec(command, *args, cwd=cwd)
    except OSError as e:
        raise InstallError(127, f"Could not run {command}: {e}") from e
    return await process.wait()


async def load_existing_lock(installer: 'Installer') -> Optional[LockTree]:
    logging.debug("install: loading existing lockfile")
    return installer.manager.load_lock_tree(installer.where)


async def run_top_level_lifecycle(installer: 'Installer', stage: str) -> None:
    manifest = installer.manager.maybe_read_file(installer.where, MANIFEST) or {}
    script = (manifest.get("scripts") or {}).get(stage)
    if not script:
        return

    logging.info(f"> {stage}: {script}")
    if installer.dry_run:
        return
    returncode = await spawn(installer.npm_command, ["run-script", stage], installer.where)
    if returncode != 0:
        raise InstallError(returncode)


async def load_patched_lock(installer: 'Installer') -> Optional[LockTree]:
    """Loads the lockfile and strips the resolution of every deep update target."""
    lock_tree = await load_existing_lock(installer)
    if lock_tree is None:
        return None

    deep_args = installer.opts.get("deep_args") or []
    patched = patch_all(lock_tree.root, deep_args)
    logging.debug(f"Patched {len(patched)} lockfile entries for re-resolution")
    return lock_tree


async def skip_lifecycle(installer: 'Installer', stage: str) -> None:
    logging.debug(f"Skipping top-level {stage} lifecycle")


@dataclass
class InstallHooks:
    load_lock: Callable[['Installer'], Awaitable[Optional[LockTree]]] = load_existing_lock
    run_lifecycle: Callable[['Installer', str], Awaitable[None]] = run_top_level_lifecycle


class Installer:
    """
    Installs `args` into the project at `where` through npm.

    The lockfile-loading and top-level lifecycle stages are supplied by
    `hooks`, so restricted installs swap behaviour without subclassing.
    """

    def __init__(
        self,
        where: str,
        dry_run: bool,
        args: List[str],
        opts: Optional[Dict[str, Any]] = None,
        hooks: Optional[InstallHooks] = None,
        npm_command: str = "npm",
        manager: Optional[NodeManager] = None,
    ) -> None:
        self.where = where
        self.dry_run = dry_run
        self.args = list(args)
        self.opts = opts or {}
        self.hooks = hooks or InstallHooks()
        self.npm_command = npm_command
        self.manager = manager or NodeManager()
        self.lock_tree: Optional[LockTree] = None

    async def run(self) -> int:
        self.lock_tree = await self.hooks.load_lock(self)
        await self.hooks.run_lifecycle(self, "preinstall")
        await self.install()
        await self.hooks.run_lifecycle(self, "postinstall")
        return 0

    async def install(self) -> None:
        backup = None
        if self.lock_tree is not None:
            self.lock_tree.sync()
            if self.dry_run:
                logging.info(f"Dry run: {self.lock_tree.file} left unchanged")
            else:
                backup = self.manager.read_raw(self.where, self.lock_tree.file)
                self.manager.write_lockfile(self.where, self.lock_tree)

        npm_args = ["install", "--no-audit", "--ignore-scripts"]
        if self.dry_run:
            npm_args.append("--dry-run")
        npm_args.extend(self.args)

        try:
            returncode = await spawn(self.npm_command, npm_args, self.where)
            if returncode != 0:
                raise InstallError(returncode)
        except InstallError:
            if backup is not None:
                logging.warning(f"Install failed, restoring the original {self.lock_tree.file}")
                self.manager.write_raw(self.where, self.lock_tree.file, backup)
            raise


def targeted_installer(
    where: str,
    dry_run: bool,
    args: List[str],
    opts: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> Installer:
    """
    Installer restricted to `args` that re-resolves only the nodes named by
    `opts["deep_args"]` and never runs the project's own lifecycle scripts.
    """
    hooks = InstallHooks(load_lock=load_patched_lock, run_lifecycle=skip_lifecycle)
    return Installer(where, dry_run, args, opts, hooks=hooks, **kwargs)
