"""Installation prefix layout and build-directory cleanup."""

import logging
import shutil
from pathlib import Path
from typing import List

from .models import ProvisionPaths

logger = logging.getLogger(__name__)


class PrefixBuilder:
    """Creates the isolated prefix tree. Additive only: never removes content."""

    def __init__(self, paths: ProvisionPaths):
        self.paths = paths

    def create(self) -> List[Path]:
        """Ensure every required directory exists. Returns the ones created now."""
        created: List[Path] = []
        for directory in self.paths.required_dirs():
            if not directory.is_dir():
                created.append(directory)
            directory.mkdir(parents=True, exist_ok=True)

        logger.info(f"Local install tree ready: {self.paths.prefix}")
        logger.info(f"Signature database directory: {self.paths.database_dir}")
        if created:
            logger.debug(f"Created {len(created)} directories")
        return created

    def missing(self) -> List[Path]:
        return [d for d in self.paths.required_dirs() if not d.is_dir()]

    def clean_build_dir(self) -> bool:
        """Remove the ephemeral build directory. Returns True if it existed."""
        build_dir = self.paths.build_dir
        if not build_dir.exists():
            logger.info("Build directory does not exist, nothing to clean")
            return False

        shutil.rmtree(build_dir)
        logger.info(f"Removed build directory: {build_dir}")
        return True
