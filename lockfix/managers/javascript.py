import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from lockfix.core.model import DependencyNode
from lockfix.errors import LockfileParseError, NoLockfileError
from lockfix.managers.base import PackageManager

SHRINKWRAP = "npm-shrinkwrap.json"
PACKAGE_LOCK = "package-lock.json"
MANIFEST = "package.json"

RE_EXACT_VERSION = re.compile(r'^v?\d+\.\d+\.\d+(-[0-9A-Za-z.\-]+)?(\+[0-9A-Za-z.\-]+)?$')


@dataclass
class LockTree:
    """A parsed lockfile together with the dependency graph built from it."""

    data: Dict[str, Any]
    file: str
    root: DependencyNode
    nodes: Dict[str, DependencyNode] = field(default_factory=dict)
    entries: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def sync(self) -> None:
        """Writes every node's resolution fields back into the raw lockfile data."""
        packages = self.data.get("packages")

        for location, node in self.nodes.items():
            _write_entry(self.entries[location], node)
            if packages is None or location not in packages:
                continue
            _write_entry(packages[location], node)
            if node.requires is None:
                nested = location + "/node_modules/"
                for key in [k for k in packages if k.startswith(nested)]:
                    del packages[key]


def _write_entry(entry: Dict[str, Any], node: DependencyNode) -> None:
    entry["version"] = node.version
    for key, value in (("resolved", node.resolved), ("integrity", node.integrity), ("from", node.from_spec)):
        if value is None:
            entry.pop(key, None)
        else:
            entry[key] = value

    # Stripped nodes are resolved again along with their whole subtree
    if node.requires is None:
        entry.pop("requires", None)
        entry.pop("dependencies", None)


class NodeManager(PackageManager):
    @property
    def name(self) -> str:
        return "NPM"

    @property
    def lock_files(self) -> list[str]:
        return [SHRINKWRAP, PACKAGE_LOCK]

    def maybe_read_file(self, where: str, name: str) -> Optional[Dict[str, Any]]:
        """Parsed JSON from `where/name`, or None when the file does not exist."""
        path = os.path.join(where, name)
        try:
            raw = self.read_raw(where, name)
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            raise LockfileParseError(f"{name} is not valid UTF-8: {e}", path)

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise LockfileParseError(f"Failed to parse {name}: {e}", path)

        if not isinstance(data, dict):
            raise LockfileParseError(f"{name} must contain a JSON object, got {type(data).__name__}", path)
        return data

    def read_raw(self, where: str, name: str) -> str:
        with open(os.path.join(where, name), "r", encoding="utf-8") as f:
            return f.read()

    def write_raw(self, where: str, name: str, content: str) -> None:
        with open(os.path.join(where, name), "w", encoding="utf-8") as f:
            f.write(content)

    def read_lock_data(self, where: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """Returns the lockfile to use and its filename; the shrinkwrap wins."""
        shrinkwrap = self.maybe_read_file(where, SHRINKWRAP)
        lockfile = self.maybe_read_file(where, PACKAGE_LOCK)

        if shrinkwrap is not None and lockfile is not None:
            logging.warning(f"Both {SHRINKWRAP} and {PACKAGE_LOCK} exist, using {SHRINKWRAP}.")
        if shrinkwrap is not None:
            return shrinkwrap, SHRINKWRAP
        if lockfile is not None:
            return lockfile, PACKAGE_LOCK
        return None, None

    @staticmethod
    def requires_map(manifest: Dict[str, Any]) -> Dict[str, str]:
        requires = {}
        requires.update(manifest.get("dependencies") or {})
        requires.update(manifest.get("devDependencies") or {})
        return requires

    def verify(self, manifest: Dict[str, Any], lock_data: Dict[str, Any]) -> List[str]:
        """
        Checks that every declared dependency is locked. Exact version pins
        must match the locked version; ranges are left to npm.
        """
        errors = []
        locked = lock_data.get("dependencies") or {}

        for name, spec in self.requires_map(manifest).items():
            entry = locked.get(name)
            if entry is None:
                errors.append(f"Missing: {name}@{spec}")
                continue
            version = entry.get("version", "")
            if RE_EXACT_VERSION.match(spec) and version != spec.lstrip("v"):
                errors.append(f"Invalid: lock file's {name}@{version} does not satisfy {name}@{spec}")

        return errors

    def build_tree(self, manifest: Dict[str, Any], lock_data: Dict[str, Any], file: str = PACKAGE_LOCK) -> LockTree:
        logging.debug(f"Building dependency tree from {file}...")

        if "dependencies" not in lock_data and "packages" in lock_data:
            version = lock_data.get("lockfileVersion")
            raise LockfileParseError(
                f"lockfileVersion {version} is not supported, regenerate it with --lockfile-version 2", file
            )

        root = DependencyNode(
            manifest.get("name") or lock_data.get("name") or "project",
            manifest.get("version") or lock_data.get("version", ""),
            expanded=True,
        )
        lock_tree = LockTree(lock_data, file, root)

        def place(parent, dependencies, prefix):
            for dep_name, entry in dependencies.items():
                location = f"{prefix}node_modules/{dep_name}"
                node = DependencyNode(
                    dep_name,
                    entry.get("version", ""),
                    resolved=entry.get("resolved"),
                    integrity=entry.get("integrity"),
                    from_spec=entry.get("from"),
                    dev=bool(entry.get("dev", False)),
                    location=location,
                    parent=parent,
                )
                lock_tree.nodes[location] = node
                lock_tree.entries[location] = entry
                place(node, entry.get("dependencies") or {}, location + "/")

        place(root, lock_data.get("dependencies") or {}, "")

        for dep_name in self.requires_map(manifest):
            self._link(lock_tree, root, "", dep_name)

        for location, node in lock_tree.nodes.items():
            requires = lock_tree.entries[location].get("requires")
            if isinstance(requires, dict):
                for dep_name in requires:
                    self._link(lock_tree, node, location, dep_name)

        logging.debug(f"Tree built. {len(lock_tree.nodes)} locked packages.")
        return lock_tree

    def _link(self, lock_tree: LockTree, node: DependencyNode, location: str, dep_name: str) -> None:
        target = self._resolve(lock_tree.nodes, location, dep_name)
        if target is None:
            logging.debug(f"{node.path()} requires {dep_name}, which is not in the lockfile")
            return
        node.add_require(target)

    @staticmethod
    def _resolve(nodes: Dict[str, DependencyNode], location: str, dep_name: str) -> Optional[DependencyNode]:
        """node_modules lookup: the closest placement walking up from `location`."""
        base = location
        while True:
            candidate = f"{base}/node_modules/{dep_name}" if base else f"node_modules/{dep_name}"
            if candidate in nodes:
                return nodes[candidate]
            if not base:
                return None
            base = base.rpartition("/node_modules/")[0]

    def load_lock_tree(self, where: str) -> Optional[LockTree]:
        manifest = self.maybe_read_file(where, MANIFEST) or {}
        lock_data, lock_file = self.read_lock_data(where)
        if lock_data is None:
            return None
        return self.build_tree(manifest, lock_data, lock_file)

    def write_lockfile(self, where: str, lock_tree: LockTree) -> None:
        logging.debug(f"Writing {os.path.join(where, lock_tree.file)}...")
        self.write_raw(where, lock_tree.file, json.dumps(lock_tree.data, indent=2) + "\n")

    def get_dependencies(self, where: str = ".") -> Tuple[DependencyNode, Dict[str, str]]:
        lock_tree = self.load_lock_tree(where)
        if lock_tree is None:
            raise NoLockfileError()

        versions_map = {node.name: node.version for node in lock_tree.nodes.values()}
        return lock_tree.root, versions_map
