from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional


@dataclass(eq=False)
class DependencyNode:
    name: str
    version: str
    resolved: Optional[str] = None
    integrity: Optional[str] = None
    from_spec: Optional[str] = None
    requires: Optional[List['DependencyNode']] = field(default_factory=list, repr=False)
    dev: bool = False

    # Lockfile placement
    location: str = ""
    parent: Optional['DependencyNode'] = field(default=None, repr=False)

    # Security model
    vulnerable: bool = False
    vuln_summary: str = ""
    vuln_details: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    # UI
    expanded: bool = False

    def find(self, name: str) -> Optional['DependencyNode']:
        """Direct dependency called `name`, if this node requires one."""
        for child in self.requires or ():
            if child.name == name:
                return child
        return None

    def add_require(self, child: 'DependencyNode') -> None:
        if self.requires is None:
            self.requires = []
        if self.find(child.name) is None:
            self.requires.append(child)

    def path(self) -> str:
        """Placement chain for diagnostics, e.g. `app > express > qs`."""
        names = []
        node = self
        while node is not None:
            names.append(node.name)
            node = node.parent
        return " > ".join(reversed(names))


@dataclass(frozen=True)
class Resolution:
    id: Any
    path: str
    dev: bool = False
    optional: bool = False
    bundled: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Resolution':
        return cls(
            id=data.get("id"),
            path=data.get("path", ""),
            dev=bool(data.get("dev", False)),
            optional=bool(data.get("optional", False)),
            bundled=bool(data.get("bundled", False)),
        )


@dataclass(frozen=True)
class RemediationAction:
    module: str
    target: str
    action: str
    is_major: bool = False
    resolves: tuple = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RemediationAction':
        return cls(
            module=data["module"],
            target=str(data.get("target") or ""),
            action=data["action"],
            is_major=bool(data.get("isMajor", False)),
            resolves=tuple(Resolution.from_dict(r) for r in data.get("resolves", [])),
        )

    @property
    def spec(self) -> str:
        return f"{self.module}@{self.target}"

    def key(self) -> tuple:
        return (self.action, self.module, self.target, tuple(r.path for r in self.resolves))


class KeyedSet:
    """Insertion-ordered set deduplicated on an explicit key."""

    def __init__(self, key=None):
        self._key = key or (lambda value: value)
        self._items: Dict[Any, Any] = {}

    def add(self, value) -> None:
        self._items.setdefault(self._key(value), value)

    def __contains__(self, value) -> bool:
        return self._key(value) in self._items

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"KeyedSet({list(self._items.values())!r})"


@dataclass
class ActionPlan:
    install: KeyedSet = field(default_factory=KeyedSet)
    update: KeyedSet = field(default_factory=KeyedSet)
    major: KeyedSet = field(default_factory=KeyedSet)
    review: KeyedSet = field(default_factory=lambda: KeyedSet(key=RemediationAction.key))

    def install_args(self) -> List[str]:
        """Direct installs followed by the terminal specifier of every update path."""
        args = KeyedSet()
        for spec in self.install:
            args.add(spec)
        for path in self.update:
            args.add(path.split(">")[-1])
        return list(args)

    def deep_args(self) -> List[List[str]]:
        return [path.split(">") for path in self.update]

    def is_empty(self) -> bool:
        return not (self.install or self.update or self.major or self.review)


SEVERITIES = ("info", "low", "moderate", "high", "critical")


@dataclass
class AuditReport:
    vulnerabilities: Dict[str, int] = field(default_factory=dict)
    actions: List[RemediationAction] = field(default_factory=list)
    advisories: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    dependencies: int = 0
    dev_dependencies: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditReport':
        metadata = data.get("metadata", {})
        counts = metadata.get("vulnerabilities", {})
        return cls(
            vulnerabilities={sev: int(counts.get(sev, 0)) for sev in SEVERITIES},
            actions=[RemediationAction.from_dict(a) for a in data.get("actions", [])],
            advisories={str(k): v for k, v in data.get("advisories", {}).items()},
            dependencies=int(metadata.get("dependencies", 0)),
            dev_dependencies=int(metadata.get("devDependencies", 0)),
        )

    def vulnerability_count(self) -> int:
        return sum(self.vulnerabilities.get(sev, 0) for sev in ("low", "moderate", "high", "critical"))
