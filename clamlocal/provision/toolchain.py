"""Pre-build environment checks: required tools and the engine source tree."""

import logging
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from .errors import MissingDependencyError, SourceTreeError
from .models import SOURCE_DESCRIPTOR

logger = logging.getLogger(__name__)

REQUIRED_TOOLS: List[str] = ["cmake", "make", "gcc", "g++"]

# Any one of these satisfies the optional Rust toolchain
OPTIONAL_RUST_TOOLS: List[str] = ["cargo", "rustc"]


class DependencyProber:
    """Checks that required build tools are reachable on PATH.

    All missing tools are collected and reported in a single error.
    """

    def __init__(
        self,
        required: Optional[Sequence[str]] = None,
        optional: Optional[Sequence[str]] = None,
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        self.required = list(required) if required is not None else list(REQUIRED_TOOLS)
        self.optional = list(optional) if optional is not None else list(OPTIONAL_RUST_TOOLS)
        self._which = which

    def locate(self) -> Dict[str, Optional[str]]:
        """Resolve every required tool. Returns name -> path or None."""
        return {name: self._which(name) for name in self.required}

    def has_optional_toolchain(self) -> bool:
        return any(self._which(name) for name in self.optional)

    def check(self) -> Dict[str, str]:
        """Raise MissingDependencyError listing all missing required tools."""
        found = self.locate()
        missing = [name for name, path in found.items() if path is None]

        if self.optional and not self.has_optional_toolchain():
            logger.warning(
                "Rust toolchain not found, falling back to the native CMake build"
            )

        if missing:
            logger.error(f"Missing required dependencies: {' '.join(missing)}")
            raise MissingDependencyError(missing)

        for name, path in found.items():
            logger.debug(f"{name}: {path}")
        logger.info("System dependency check passed")
        return {name: path for name, path in found.items() if path}


class SourceValidator:
    """Confirms the engine source tree exists and carries its build descriptor."""

    def __init__(self, source_dir: Path, descriptor: str = SOURCE_DESCRIPTOR):
        self.source_dir = Path(source_dir)
        self.descriptor = descriptor

    def check(self) -> Path:
        # A missing tree is reported before a missing descriptor
        if not self.source_dir.is_dir():
            raise SourceTreeError(f"ClamAV source directory not found: {self.source_dir}")

        descriptor_path = self.source_dir / self.descriptor
        if not descriptor_path.is_file():
            raise SourceTreeError(
                f"{self.descriptor} not found in {self.source_dir}; "
                f"make sure this is a valid ClamAV source tree"
            )

        logger.info(f"ClamAV source check passed: {self.source_dir}")
        return descriptor_path
