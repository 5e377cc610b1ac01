"""
Configuration file support for stackprobe.

Supports TOML configuration files (stackprobe.toml) for persistent settings.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from stackprobe.errors import ConfigError, ErrorCode, invalid_config

# Default config file names (searched in order)
CONFIG_FILE_NAMES = [
    "stackprobe.toml",
    ".stackprobe.toml",
    "pyproject.toml",  # Will look for [tool.stackprobe] section
]

# Files requested from a repository root when building the analysis file set
DEFAULT_KEY_FILES = [
    "package.json", "requirements.txt", "Gemfile", "composer.json",
    "go.mod", "Cargo.toml", "pom.xml", "build.gradle",
    "Dockerfile", "docker-compose.yml", "docker-compose.yaml",
    "vercel.json", "netlify.toml", "railway.json", "render.yaml",
    "tailwind.config.js", "tailwind.config.ts", "next.config.js",
    "nuxt.config.js", "vue.config.js", "angular.json", "tsconfig.json",
    ".eslintrc", ".eslintrc.js", "jest.config.js", "cypress.json",
    "main.tf", "variables.tf", "terraform.tf",
]


class DetectionSettings(BaseModel):
    """Detection-related configuration."""

    patterns_file: str | None = Field(
        default=None, description="JSON/TOML rule file replacing the built-in table"
    )


class FetchSettings(BaseModel):
    """Repository file collection configuration."""

    default_branch: str = Field(default="main", min_length=1)
    max_workers: int = Field(default=8, ge=1, le=64)
    max_file_size_bytes: int = Field(default=1_000_000, ge=1024, le=100_000_000)
    workflow_dir: str = Field(default=".github/workflows")
    key_files: list[str] = Field(default_factory=lambda: list(DEFAULT_KEY_FILES))
    excluded_dirs: list[str] = Field(default_factory=lambda: [
        "node_modules", "dist", "build", ".next", ".git", "coverage",
        "vendor", "__pycache__", "target", ".venv", "venv",
    ])


class OutputSettings(BaseModel):
    """Output-related configuration."""

    pretty_json: bool = Field(default=True)


class StackProbeConfig(BaseModel):
    """Complete stackprobe configuration."""

    detection: DetectionSettings = Field(default_factory=DetectionSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)

    @classmethod
    def default(cls) -> "StackProbeConfig":
        """Create config with all defaults."""
        return cls()


def parse_toml(content: str) -> dict[str, Any]:
    """Parse TOML content."""
    try:
        import tomllib
    except ImportError:
        # Python < 3.11 fallback
        try:
            import tomli as tomllib
        except ImportError:
            raise ConfigError(
                message="TOML parsing requires Python 3.11+ or 'tomli' package",
                code=ErrorCode.CONFIG_INVALID,
                suggestion="Install tomli: pip install tomli",
            )
    return tomllib.loads(content)


def _find_config_file(start_dir: Path | None = None) -> Path | None:
    """
    Find configuration file by searching up from start directory.

    Args:
        start_dir: Directory to start search (default: current directory)

    Returns:
        Path to config file if found, None otherwise
    """
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()

    while True:
        for name in CONFIG_FILE_NAMES:
            config_path = current / name
            if config_path.exists():
                return config_path

        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_config(config_path: Path | None = None, start_dir: Path | None = None) -> StackProbeConfig:
    """
    Load configuration from file.

    Args:
        config_path: Explicit path to config file (optional)
        start_dir: Where to start searching when no path is given

    Returns:
        StackProbeConfig with loaded settings

    Raises:
        ConfigError: If config file is invalid
    """
    if config_path is None:
        config_path = _find_config_file(start_dir)

    if config_path is None:
        return StackProbeConfig.default()

    try:
        content = config_path.read_text()
    except OSError as e:
        raise ConfigError(
            message=f"Failed to read config file: {e}",
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            config_path=str(config_path),
        )

    try:
        data = parse_toml(content)
    except Exception as e:
        raise ConfigError(
            message=f"Failed to parse config file: {e}",
            code=ErrorCode.CONFIG_INVALID,
            config_path=str(config_path),
        )

    # Handle pyproject.toml (look for [tool.stackprobe] section)
    if config_path.name == "pyproject.toml":
        data = data.get("tool", {}).get("stackprobe", {})
        if not data:
            return StackProbeConfig.default()

    try:
        return StackProbeConfig.model_validate(data)
    except ValidationError as e:
        raise invalid_config(str(config_path), str(e)) from e


def generate_default_config() -> str:
    """
    Generate default configuration file content.

    Returns:
        TOML string with default configuration
    """
    key_files = ",\n".join(f'    "{name}"' for name in DEFAULT_KEY_FILES)
    return f'''# stackprobe configuration

[detection]
# patterns_file = "rules.toml"    # Replace the built-in rule table

[fetch]
default_branch = "main"
max_workers = 8                    # Parallel file fetches
max_file_size_bytes = 1_000_000    # 1 MB
workflow_dir = ".github/workflows"
key_files = [
{key_files},
]
excluded_dirs = ["node_modules", "dist", "build", ".next", ".git", "coverage",
                 "vendor", "__pycache__", "target", ".venv", "venv"]

[output]
pretty_json = true
'''


def save_default_config(path: Path | None = None) -> Path:
    """
    Save default configuration to file.

    Args:
        path: Path to save config (default: ./stackprobe.toml)

    Returns:
        Path where config was saved
    """
    if path is None:
        path = Path("stackprobe.toml")

    path.write_text(generate_default_config())
    return path
