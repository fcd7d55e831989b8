from .config import ConfigManager
from .models import AppConfig
from .provision import (
    ModeFlags,
    PipelineResult,
    ProvisionPaths,
    ProvisionPipeline,
    VerificationReport,
)
from .scan import ScanOptions, ScanWrapper
from .subtree import SubtreeTool

__version__ = "1.0.0"
__all__ = [
    "ConfigManager",
    "AppConfig",
    "ModeFlags",
    "PipelineResult",
    "ProvisionPaths",
    "ProvisionPipeline",
    "VerificationReport",
    "ScanOptions",
    "ScanWrapper",
    "SubtreeTool",
]
