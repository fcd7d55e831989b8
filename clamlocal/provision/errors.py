"""Exception hierarchy for the provisioning pipeline."""

from typing import List, Optional


class ProvisionError(Exception):
    """Base class for all provisioning failures."""


class MissingDependencyError(ProvisionError):
    """One or more required build tools are not on PATH."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required dependencies: {' '.join(self.missing)}")


class SourceTreeError(ProvisionError):
    """The engine source tree or its build descriptor is absent."""


class StageFailedError(ProvisionError):
    """An external process backing a stage exited non-zero."""

    def __init__(self, stage: str, return_code: Optional[int], detail: str = ""):
        self.stage = stage
        self.return_code = return_code
        message = f"{stage} failed with exit code {return_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class BuildArtifactsMissingError(ProvisionError):
    """Install was requested but no configured build directory exists."""


class ConfigTemplateError(ProvisionError):
    """No freshclam configuration template is available under the prefix."""


class PipelineLockedError(ProvisionError):
    """Another live process holds the provisioning lock."""

    def __init__(self, lock_file, owner_pid: int):
        self.lock_file = lock_file
        self.owner_pid = owner_pid
        super().__init__(
            f"Provisioning already running (pid {owner_pid}, lock {lock_file})"
        )


class DatabaseEmptyError(ProvisionError):
    """The signature database directory is missing or has no files."""


class VerificationFailedError(ProvisionError):
    """The verifier accumulated one or more hard failures."""

    def __init__(self, failures: int):
        self.failures = failures
        self.return_code = 1
        super().__init__(f"Verification found {failures} problem(s)")
