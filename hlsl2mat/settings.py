"""
Project configuration.

A project is described by a YAML file listing the function libraries to
generate, where to write the artifacts, the virtual shader roots used to
resolve includes and the external editor used to open compiler errors.
Relative paths are resolved against the directory containing the file.
"""

from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hlsl2mat.dependencies import VirtualPathResolver
from hlsl2mat.errors import ConfigError
from hlsl2mat.models import Define

CONFIG_VERSION = 1
DEFAULT_CONFIG_NAME = "hlsl2mat.yaml"


class EditorSettings(BaseModel):
    """External editor used to open the location of a compiler error.

    Attributes:
        path: Executable, %VAR% environment variables are expanded
        arguments: Argument template, %FILE%, %LINE% and %CHAR% are replaced
    """

    model_config = ConfigDict(extra="forbid")

    path: str = "%LOCALAPPDATA%/Programs/Microsoft VS Code/Code.exe"
    arguments: str = '-g "%FILE%:%LINE%:%CHAR%"'


class LibraryConfig(BaseModel):
    """One library source and the options used to generate its functions.

    Attributes:
        name: Library name, used for the manifest and the output directory
        file: Library source, relative to the configuration file
        update_on_file_change: Regenerate when the source changes while watching
        update_on_include_change: Regenerate when an include changes while watching
        put_functions_in_subdirectory: Write the artifacts to <name>_GeneratedFunctions
        accurate_errors: Emit #line directives so that errors point at the source
        categories: Categories of the generated functions
        include_file_paths: Extra virtual include paths of every generated function
        additional_defines: Extra defines of every generated function, written
            as a NAME: VALUE mapping in the configuration file
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    file: str
    update_on_file_change: bool = True
    update_on_include_change: bool = True
    put_functions_in_subdirectory: bool = False
    accurate_errors: bool = True
    categories: list[str] = Field(default_factory=list)
    include_file_paths: list[str] = Field(default_factory=list)
    additional_defines: list[Define] = Field(default_factory=list)

    @field_validator("additional_defines", mode="before")
    @classmethod
    def defines_from_mapping(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, dict):
            return [Define(name=str(name), value=str(v)) for name, v in value.items()]
        if isinstance(value, list) and all(isinstance(d, Define) for d in value):
            return value
        raise ValueError("additional_defines must be a mapping of name to value")

    def generation_metadata(self) -> str:
        """Options affecting the generated code, hashed into every fingerprint."""
        return yaml.safe_dump(
            {
                "categories": self.categories,
                "include_file_paths": self.include_file_paths,
                "additional_defines": [[d.name, d.value] for d in self.additional_defines],
            },
            default_flow_style=True,
            sort_keys=True,
        ).strip()


class ProjectConfig(BaseModel):
    """Root configuration.

    Attributes:
        root: Directory relative paths are resolved against, not serialized
        output_dir: Directory receiving the generated artifacts
        virtual_roots: Virtual shader root -> directory mapping
        libraries: Function libraries of the project
        editor: External editor settings
    """

    model_config = ConfigDict(extra="forbid")

    root: Path = Field(default_factory=Path.cwd, exclude=True)
    output_dir: str = "generated"
    virtual_roots: dict[str, str] = Field(default_factory=dict)
    libraries: list[LibraryConfig] = Field(default_factory=list)
    editor: EditorSettings = Field(default_factory=EditorSettings)

    def resolve(self, path: str | Path) -> Path:
        """Resolve a path relative to the configuration directory."""
        path = Path(path)
        return path if path.is_absolute() else self.root / path

    def source_path(self, library: LibraryConfig) -> Path:
        return self.resolve(library.file)

    def output_directory(self, library: LibraryConfig) -> Path:
        """Directory the artifacts of a library are written to."""
        directory = self.resolve(self.output_dir)
        if library.put_functions_in_subdirectory:
            directory = directory / f"{library.name}_GeneratedFunctions"
        return directory

    def manifest_directory(self) -> Path:
        return self.resolve(self.output_dir)

    def path_resolver(self) -> VirtualPathResolver:
        return VirtualPathResolver(
            {
                virtual_root: self.resolve(directory)
                for virtual_root, directory in self.virtual_roots.items()
            }
        )

    def library(self, name: str) -> LibraryConfig:
        """Find a library by name.

        Raises:
            ConfigError: If no library has this name
        """
        for library in self.libraries:
            if library.name == name:
                return library
        raise ConfigError(f"Unknown library: {name}")


def _validation_message(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in error.errors()
    )


def config_from_dict(data: dict[str, Any], root: Path) -> ProjectConfig:
    """Build a configuration from parsed YAML.

    Raises:
        ConfigError: If the version is unsupported or an option is invalid
    """
    version = data.get("version")
    if version != CONFIG_VERSION:
        raise ConfigError(
            f"Unsupported configuration version {version!r}, expected {CONFIG_VERSION}"
        )

    # Empty YAML sections fall back to their defaults
    options = {
        key: value for key, value in data.items() if key != "version" and value is not None
    }
    try:
        return ProjectConfig.model_validate({**options, "root": root})
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {_validation_message(e)}") from e


def config_to_dict(config: ProjectConfig) -> dict[str, Any]:
    data = config.model_dump(mode="json")
    for library_data, library in zip(data["libraries"], config.libraries):
        library_data["additional_defines"] = {
            define.name: define.value for define in library.additional_defines
        }
    return {"version": CONFIG_VERSION, **data}


def load_config(path: str | Path) -> ProjectConfig:
    """Load a project configuration file.

    Args:
        path: YAML configuration file

    Returns:
        The configuration, rooted at the directory of the file

    Raises:
        ConfigError: If the file cannot be read or is invalid
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read configuration {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Invalid configuration {path}: expected a mapping")

    config = config_from_dict(data, root=path.resolve().parent)
    logger.debug(f"Loaded {path} with {len(config.libraries)} libraries")
    return config


def save_config(config: ProjectConfig, path: str | Path) -> None:
    """Write a project configuration file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(config_to_dict(config), f, sort_keys=False)
