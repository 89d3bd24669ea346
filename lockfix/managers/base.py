from abc import ABC, abstractmethod
from typing import Tuple, Dict, List
from lockfix.core.model import DependencyNode

class PackageManager(ABC):
    """Base class for lockfile-backed package managers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Friendly ecosystem name (e.g., NPM)."""
        pass

    @property
    @abstractmethod
    def lock_files(self) -> List[str]:
        """Lockfile names, in order of precedence."""
        pass

    def detect(self, files: List[str]) -> bool:
        """
        Returns True if this manager supports the given directory listing.
        Default implementation checks for exact match in lock_files.
        """
        for lock_file in self.lock_files:
            if lock_file in files:
                return True
        return False

    @abstractmethod
    def get_dependencies(self, where: str = ".") -> Tuple[DependencyNode, Dict[str, str]]:
        pass
