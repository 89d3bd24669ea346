from typing import List, Optional


class LockfixError(Exception):
    """Base class for every error lockfix reports to the user."""

    code = "EAUDIT"


class AuditGlobalError(LockfixError):
    code = "EAUDITGLOBAL"

    def __init__(self):
        super().__init__("`lockfix` does not support testing globals")


class InvalidSubcommandError(LockfixError):
    code = "EUSAGE"

    def __init__(self, subcommand: str, usage: str):
        super().__init__(f"Invalid audit subcommand: `{subcommand}`\n\nUsage:\n{usage}")
        self.subcommand = subcommand


class NoManifestError(LockfixError):
    code = "EAUDITNOPJSON"

    def __init__(self):
        super().__init__("No package.json found: Cannot audit a project without a package.json")


class NoLockfileError(LockfixError):
    code = "EAUDITNOLOCK"

    def __init__(self):
        super().__init__(
            "Neither npm-shrinkwrap.json nor package-lock.json found: "
            "Cannot audit a project without a lockfile"
        )


class LockfileParseError(LockfixError):
    code = "EJSONPARSE"

    def __init__(self, message: str, file: str):
        super().__init__(f"{message} ({file})")
        self.file = file


class LockVerifyError(LockfixError):
    code = "ELOCKVERIFY"

    def __init__(self, lock_file: str, errors: List[str]):
        details = "\n    ".join(errors)
        super().__init__(
            f"Errors were found in your {lock_file}, run  npm install  to fix them.\n    {details}"
        )
        self.errors = errors


class AuditUnsupportedError(LockfixError):
    code = "ENOAUDIT"

    def __init__(self, registry: str, wrapped: Optional[BaseException] = None):
        super().__init__(f"Your configured registry ({registry}) does not support audit requests.")
        self.wrapped = wrapped


class AuditRequestError(LockfixError):
    code = "EAUDITREQUEST"

    def __init__(self, message: str, wrapped: Optional[BaseException] = None):
        super().__init__(message)
        self.wrapped = wrapped


class PathSkewError(LockfixError):
    """A remediation path names a dependency the lockfile tree does not have."""

    code = "EAUDITPATH"

    def __init__(self, path: List[str], missing: str, walked: List[str]):
        where = " > ".join(walked) if walked else "the project root"
        super().__init__(
            f"Cannot apply update {'>'.join(path)}: `{missing}` is not a dependency of {where}. "
            "The audit report does not match the lockfile."
        )
        self.path = path
        self.missing = missing


class InstallError(LockfixError):
    code = "EINSTALL"

    def __init__(self, returncode: int, message: Optional[str] = None):
        super().__init__(message or f"npm install exited with status {returncode}")
        self.returncode = returncode
