"""Configuration parsing and validation for docmirror.

This module reads the YAML file that declares which repositories are mirrored
and exposes them through a registry that the sync engine receives explicitly.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from pathlib import Path
from typing import Optional

import yaml
from typing_extensions import NotRequired, TypedDict

from .errors import IncompleteResource, UnknownResource

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_ROOT = "content/docs"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_MAX_WORKERS = 4


class SyncResource(TypedDict):
    """Configuration for a single mirrored repository.

    ``content`` is an optional list of path prefixes; when absent the whole
    tree is mirrored.
    """

    name: str
    repo: str
    branch: str
    token: str
    content: NotRequired[list[str]]


class Config(TypedDict):
    """Main configuration structure."""

    content_root: Path
    api_url: str
    max_workers: int
    resources: dict[str, SyncResource]


def load_config(config_path: Path) -> Config:
    """Load and validate configuration from YAML file.

    Structural problems (wrong types, missing keys) are reported here.
    Whether a resource has everything it needs to sync, such as a non-empty
    token, is checked later by :meth:`ResourceRegistry.lookup`.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Parsed and validated configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        yaml.YAMLError: If the YAML is malformed
        ValueError: If the config structure is invalid

    Example:
        >>> config = load_config(Path("docmirror.yaml"))
        >>> sorted(config["resources"])
        ['handbook']
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML configuration: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Configuration must be a dictionary")

    if "resources" not in data:
        raise ValueError("Configuration must contain 'resources' key")

    content_root = data.get("content_root", DEFAULT_CONTENT_ROOT)
    if not isinstance(content_root, str) or not content_root:
        raise ValueError("'content_root' must be a non-empty string")

    api_url = data.get("api_url", DEFAULT_API_URL)
    if not isinstance(api_url, str) or not api_url:
        raise ValueError("'api_url' must be a non-empty string")

    max_workers = data.get("max_workers", DEFAULT_MAX_WORKERS)
    # bool is an int subclass
    if isinstance(max_workers, bool) or not isinstance(max_workers, int):
        raise ValueError("'max_workers' must be an integer")
    if max_workers < 1:
        raise ValueError("'max_workers' must be at least 1")

    resources = data["resources"]
    if not isinstance(resources, dict):
        raise ValueError("'resources' must be a mapping of name to resource")

    validated_resources: dict[str, SyncResource] = {}
    for name, resource in resources.items():
        validated_resources[str(name)] = _parse_resource(str(name), resource)

    config: Config = {
        "content_root": (config_path.parent / content_root).resolve(),
        "api_url": api_url.rstrip("/"),
        "max_workers": max_workers,
        "resources": validated_resources,
    }

    logger.info(
        f"Successfully loaded configuration with {len(validated_resources)} resources "
        f"(content root: {config['content_root']})"
    )

    return config


def _parse_resource(name: str, resource: object) -> SyncResource:
    """Validate one entry of the ``resources`` mapping.

    Args:
        name: Resource name (mapping key)
        resource: Raw resource data

    Returns:
        Validated resource

    Raises:
        ValueError: If the resource structure is invalid
    """
    if not isinstance(resource, dict):
        raise ValueError(f"Resource '{name}' must be a dictionary")

    if not name or "/" in name or name in (".", ".."):
        raise ValueError(f"Resource name '{name}' cannot be used as a folder name")

    repo = resource.get("repo", "")
    branch = resource.get("branch", "")
    if repo is None:
        repo = ""
    if branch is None:
        branch = ""

    if not isinstance(repo, str):
        raise ValueError(f"Resource '{name}': 'repo' must be a string")
    if not isinstance(branch, str):
        raise ValueError(f"Resource '{name}': 'branch' must be a string")

    # Validate repo format (should be owner/repo)
    if repo and "/" not in repo:
        raise ValueError(f"Resource '{name}': 'repo' must be in format 'owner/repo'")

    token = _resolve_token(name, resource)

    validated: SyncResource = {
        "name": name,
        "repo": repo,
        "branch": branch,
        "token": token,
    }

    if resource.get("content") is not None:
        content = resource["content"]
        if not isinstance(content, list):
            raise ValueError(f"Resource '{name}': 'content' must be a list")
        for i, prefix in enumerate(content):
            if not isinstance(prefix, str):
                raise ValueError(f"Resource '{name}', content {i}: must be a string")
        validated["content"] = content

    return validated


def _resolve_token(name: str, resource: dict) -> str:
    """Return the resource token, reading ``token_env`` from the environment.

    An unset variable gives an empty token.
    """
    if "token" in resource and "token_env" in resource:
        raise ValueError(f"Resource '{name}': use either 'token' or 'token_env'")

    if "token_env" in resource:
        variable = resource["token_env"]
        if not isinstance(variable, str) or not variable:
            raise ValueError(f"Resource '{name}': 'token_env' must be a string")
        token = os.getenv(variable, "")
        if not token:
            logger.warning(f"Environment variable {variable} for resource '{name}' is not set")
        return token

    token = resource.get("token") or ""
    if not isinstance(token, str):
        raise ValueError(f"Resource '{name}': 'token' must be a string")
    return token


class ResourceRegistry(Mapping[str, SyncResource]):
    """Read-only mapping of resource name to sync configuration."""

    def __init__(self, resources: Mapping[str, SyncResource]):
        self._resources = dict(resources)

    @classmethod
    def from_config(cls, config: Config) -> ResourceRegistry:
        return cls(config["resources"])

    def __getitem__(self, name: str) -> SyncResource:
        return self._resources[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._resources)

    def __len__(self) -> int:
        return len(self._resources)

    def lookup(self, name: str) -> SyncResource:
        """Resolve and validate a resource before a sync pass.

        Args:
            name: Resource name

        Returns:
            The registered resource

        Raises:
            UnknownResource: If the name is not registered
            IncompleteResource: If token, repo or branch is empty
        """
        resource: Optional[SyncResource] = self._resources.get(name)
        if resource is None:
            raise UnknownResource(name)

        missing = [
            field for field in ("token", "repo", "branch") if not resource.get(field)
        ]
        if missing:
            raise IncompleteResource(name, missing)

        return resource
