"""Configuration management for consistent-attachments."""

import json
import os
import re
from enum import Enum
from pathlib import Path
from typing import Any, List, Literal, Optional

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from consistent_attachments.utils import normalize_path, setup_logging

DATA_DIR_NAME = ".consistent-attachments"
CONFIG_FILE_NAME = "config.json"
WATCH_STATUS_JSON = "watch-status.json"

Environment = Literal["test", "dev", "user"]


class DuplicatePolicy(str, Enum):
    """What to do when an attachment's destination is already occupied."""

    # the entry already at the destination wins, the moving copy is dropped
    OVERWRITE = "overwrite"
    # both survive, the moving copy gets a "name N.ext" suffix
    KEEP_BOTH = "keep_both"


class ConsistentAttachmentsConfig(BaseSettings):
    """Pydantic model for consistent-attachments configuration."""

    env: Environment = Field(default="dev", description="Environment name")

    vault_path: str = Field(
        default_factory=lambda: os.getenv(
            "CONSISTENT_ATTACHMENTS_HOME", str(Path.home() / "vault")
        ),
        description="Root directory of the vault whose links and attachments are kept consistent",
    )

    # overridden by ~/.consistent-attachments/config.json
    log_level: str = "INFO"

    attachment_folder_path: str = Field(
        default="./${filename}",
        description=(
            "Template for the attachment folder of a note. '/' or '' is the vault root, "
            "'./' the note's own folder, './sub' a subfolder next to the note, 'sub' a fixed "
            "folder under the vault root. '${filename}' expands to the note name without extension."
        ),
    )

    delete_empty_folders: bool = Field(
        default=True,
        description="Remove folders left empty after attachments are moved or deleted",
    )

    delete_existing_files: bool = Field(
        default=False,
        description=(
            "When an attachment's destination is occupied, keep the existing file and drop the "
            "moving one (True) instead of keeping both with a numeric suffix (False)"
        ),
    )

    delete_attachments_with_note: bool = Field(
        default=True,
        description="Trash attachments that were only referenced by a deleted note",
    )

    update_links: bool = Field(
        default=True,
        description="Rewrite links in referring documents when a document or attachment moves",
    )

    ignore_folders: List[str] = Field(
        default_factory=lambda: [".git/", ".obsidian/", ".trash/"],
        description="Folder prefixes the engine never touches",
    )

    ignore_files: List[str] = Field(
        default_factory=lambda: [r"consistency-report\.md"],
        description="Regular expressions of file paths the engine never touches",
    )

    content_race_retries: int = Field(
        default=10,
        description="Attempts to rewrite a document whose content changed between read and write",
        gt=0,
    )

    sync_delay: int = Field(
        default=1000, description="Milliseconds to wait after changes before processing", gt=0
    )

    model_config = SettingsConfigDict(
        env_prefix="CONSISTENT_ATTACHMENTS_",
        extra="ignore",
    )

    @field_validator("ignore_files")
    @classmethod
    def validate_ignore_files(cls, patterns: List[str]) -> List[str]:
        """Fail early on patterns that would blow up at match time."""
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"Invalid ignore_files pattern '{pattern}': {e}") from e
        return patterns

    @property
    def duplicate_policy(self) -> DuplicatePolicy:
        return DuplicatePolicy.OVERWRITE if self.delete_existing_files else DuplicatePolicy.KEEP_BOTH

    @property
    def vault_root(self) -> Path:
        return Path(self.vault_path).expanduser()

    def is_path_ignored(self, path: str) -> bool:
        """Check a vault path against ignore_folders and ignore_files."""
        path = normalize_path(path)

        for folder in self.ignore_folders:
            prefix = folder[2:] if folder.startswith("./") else folder
            if prefix and path.startswith(prefix):
                return True

        return any(re.search(pattern, path) for pattern in self.ignore_files)

    @property
    def is_test_env(self) -> bool:
        """Check if running in a test environment."""
        return self.env == "test" or os.getenv("PYTEST_CURRENT_TEST") is not None

    @property
    def data_dir_path(self) -> Path:
        """App state directory for the config file, logs and watch status."""
        if config_dir := os.getenv("CONSISTENT_ATTACHMENTS_CONFIG_DIR"):
            return Path(config_dir)

        home = os.getenv("HOME", Path.home())
        return Path(home) / DATA_DIR_NAME


# Module-level cache for configuration
_CONFIG_CACHE: Optional[ConsistentAttachmentsConfig] = None


class ConfigManager:
    """Manages consistent-attachments configuration."""

    def __init__(self) -> None:
        home = os.getenv("HOME", Path.home())
        if isinstance(home, str):
            home = Path(home)

        # Allow override via environment variable
        if config_dir := os.getenv("CONSISTENT_ATTACHMENTS_CONFIG_DIR"):
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = home / DATA_DIR_NAME

        self.config_file = self.config_dir / CONFIG_FILE_NAME
        self.config_dir.mkdir(parents=True, exist_ok=True)

    @property
    def config(self) -> ConsistentAttachmentsConfig:
        """Get configuration, loading it lazily if needed."""
        return self.load_config()

    def load_config(self) -> ConsistentAttachmentsConfig:
        """Load configuration from file or create default.

        Environment variables take precedence over file config values.
        Uses module-level cache for performance across ConfigManager instances.
        """
        global _CONFIG_CACHE

        if _CONFIG_CACHE is not None:
            return _CONFIG_CACHE

        if not self.config_file.exists():
            config = ConsistentAttachmentsConfig()
            self.save_config(config)
            return config

        try:
            file_data = json.loads(self.config_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:  # pragma: no cover
            logger.error(f"Invalid JSON in config file {self.config_file}: {e}")
            raise SystemExit(
                f"Error: config file is not valid JSON: {self.config_file}\n"
                f"  {e}\n"
                f"Fix or delete the file and re-run."
            )

        # file data as base, env vars override the fields they set
        env_dict = ConsistentAttachmentsConfig().model_dump()
        merged_data = file_data.copy()
        for field_name in ConsistentAttachmentsConfig.model_fields.keys():
            env_var_name = f"CONSISTENT_ATTACHMENTS_{field_name.upper()}"
            if env_var_name in os.environ:
                merged_data[field_name] = env_dict[field_name]

        _CONFIG_CACHE = ConsistentAttachmentsConfig(**merged_data)
        return _CONFIG_CACHE

    def save_config(self, config: ConsistentAttachmentsConfig) -> None:
        """Save configuration to file and invalidate cache."""
        global _CONFIG_CACHE
        save_consistent_attachments_config(self.config_file, config)
        _CONFIG_CACHE = None


def save_consistent_attachments_config(file_path: Path, config: ConsistentAttachmentsConfig) -> None:
    """Save configuration to file."""
    try:
        config_dict = config.model_dump(mode="json")
        file_path.write_text(json.dumps(config_dict, indent=2))
    except Exception as e:  # pragma: no cover
        logger.error(f"Failed to save config: {e}")


def init_cli_logging() -> None:  # pragma: no cover
    """Initialize logging for CLI commands - file only.

    CLI commands should not log to stdout to avoid interfering with
    command output.
    """
    log_level = os.getenv("CONSISTENT_ATTACHMENTS_LOG_LEVEL", "INFO")
    setup_logging(log_level=log_level, log_to_file=True)
