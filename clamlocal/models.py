from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .provision.builder import BuildOptions
from .provision.toolchain import OPTIONAL_RUST_TOOLS, REQUIRED_TOOLS
from .provision.verifier import EXPECTED_BINARIES, SYSTEM_BIN_DIRS, SYSTEM_LIB_DIRS


class PathsConfig(BaseModel):
    project_root: str = "."
    source_dir: Optional[str] = None
    prefix: Optional[str] = None
    build_dir: Optional[str] = None
    database_dir: Optional[str] = None


class DependenciesConfig(BaseModel):
    required: List[str] = Field(default_factory=lambda: list(REQUIRED_TOOLS))
    optional: List[str] = Field(default_factory=lambda: list(OPTIONAL_RUST_TOOLS))


class VerifyConfig(BaseModel):
    expected_binaries: List[str] = Field(default_factory=lambda: list(EXPECTED_BINARIES))
    system_bin_dirs: List[str] = Field(
        default_factory=lambda: [str(p) for p in SYSTEM_BIN_DIRS]
    )
    system_lib_dirs: List[str] = Field(
        default_factory=lambda: [str(p) for p in SYSTEM_LIB_DIRS]
    )
    version_timeout: float = 30


class AppConfig(BaseModel):
    name: str = "clamlocal"
    log_level: str = "INFO"
    logs_dir: Optional[str] = None
    paths: PathsConfig = Field(default_factory=PathsConfig)
    build: BuildOptions = Field(default_factory=BuildOptions)
    dependencies: DependenciesConfig = Field(default_factory=DependenciesConfig)
    verify: VerifyConfig = Field(default_factory=VerifyConfig)

    model_config = ConfigDict(extra="allow")
