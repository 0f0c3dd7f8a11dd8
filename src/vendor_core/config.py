"""Artifact manifest loading.

Turns a validated YAML manifest into :class:`ArtifactDescriptor` objects and
the run settings found under ``globals``. Command-line values override
manifest values, which override the built-in defaults.
"""

from __future__ import annotations

import dataclasses
import os
from importlib import resources
from pathlib import Path
from typing import Any

from vendor_core.config_validator import read_yaml
from vendor_core.descriptors import (
    GCS,
    ArtifactDescriptor,
    ExpectedDigest,
    GitHubReleaseLocator,
    Locator,
    ObjectListingLocator,
    ObjectPointerLocator,
    RenamePair,
    StaticLocator,
)
from vendor_core.exceptions import ConfigValidationError, DescriptorError
from vendor_core.network_utils import RetryConfig
from vendor_core.utils.hash import DigestAlgorithm

SCHEMA_NAME = "artifacts"
DEFAULT_MANIFEST = "default_artifacts.yaml"
DEFAULT_USER_AGENT = "vendor-init"
DEFAULT_TIMEOUT = (15.0, 300.0)
GITHUB_TOKEN_ENV = "GITHUB_TOKEN"


@dataclasses.dataclass(frozen=True)
class Settings:
    retry: RetryConfig = dataclasses.field(default_factory=RetryConfig)
    timeout: tuple[float, float] = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    download_browsers: bool = True
    workdir: Path = Path(".")
    github_token: str | None = None


@dataclasses.dataclass(frozen=True)
class Manifest:
    path: str
    descriptors: tuple[ArtifactDescriptor, ...]
    settings: Settings


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def build_locator(raw: dict[str, Any]) -> Locator:
    kind = raw.get("kind")
    if kind == "static":
        return StaticLocator(url=raw["url"])
    if kind == "github_release":
        return GitHubReleaseLocator(owner=raw["owner"], repo=raw["repo"], filter=raw["filter"])
    if kind == "object_pointer":
        return ObjectPointerLocator(
            bucket=raw["bucket"],
            pointer=raw["pointer"],
            prefix=raw.get("prefix", ""),
            filename=raw["filename"],
            provider=raw.get("provider", GCS),
        )
    if kind == "object_listing":
        return ObjectListingLocator(
            bucket=raw["bucket"],
            file_prefix=raw["file_prefix"],
            suffix=raw.get("suffix", ""),
            provider=raw.get("provider", GCS),
            list_prefix=raw.get("list_prefix", ""),
        )
    raise DescriptorError(f"unknown locator kind {kind!r}", code="unknown_locator", context={"kind": kind})


def build_descriptor(raw: dict[str, Any]) -> ArtifactDescriptor:
    digest = None
    if raw.get("digest"):
        digest = ExpectedDigest(
            algorithm=DigestAlgorithm.parse(raw["digest"].get("algorithm")),
            value=str(raw["digest"]["value"]),
        )
    rename = RenamePair.from_value(raw["rename"]) if raw.get("rename") else None
    return ArtifactDescriptor(
        locator=build_locator(raw["locator"]),
        target=raw.get("target"),
        digest=digest,
        rename=rename,
        browser=bool(raw.get("browser", False)),
        id=raw.get("id", ""),
    )


def resolve_settings(
    globals_cfg: dict[str, Any],
    *,
    retry_max: int | None = None,
    retry_backoff: float | None = None,
    download_browsers: bool | None = None,
    workdir: Path | None = None,
    env: dict[str, str] | None = None,
) -> Settings:
    env = os.environ if env is None else env
    retry_cfg = globals_cfg.get("retry", {}) or {}
    timeout_cfg = globals_cfg.get("timeout", {}) or {}
    defaults = RetryConfig()
    retry = RetryConfig(
        max_attempts=int(_first(retry_max, retry_cfg.get("max"), defaults.max_attempts)),
        backoff_base=float(_first(retry_backoff, retry_cfg.get("backoff"), defaults.backoff_base)),
        backoff_max=float(_first(retry_cfg.get("backoff_max"), defaults.backoff_max)),
    )
    timeout = (
        float(_first(timeout_cfg.get("connect"), DEFAULT_TIMEOUT[0])),
        float(_first(timeout_cfg.get("read"), DEFAULT_TIMEOUT[1])),
    )
    workdir_value = _first(workdir, globals_cfg.get("workdir"), ".")
    return Settings(
        retry=retry,
        timeout=timeout,
        user_agent=str(_first(globals_cfg.get("user_agent"), DEFAULT_USER_AGENT)),
        download_browsers=bool(_first(download_browsers, globals_cfg.get("download_browsers"), True)),
        workdir=Path(workdir_value).expanduser(),
        github_token=env.get(GITHUB_TOKEN_ENV) or None,
    )


def default_manifest_path() -> Path:
    return Path(str(resources.files("vendor_core").joinpath(DEFAULT_MANIFEST)))


def load_manifest(path: Path | None = None, **overrides: Any) -> Manifest:
    """Read, validate and convert an artifact manifest.

    Args:
        path: Manifest file; the packaged default set when None.
        **overrides: Command-line values forwarded to :func:`resolve_settings`.

    Raises:
        ConfigValidationError: Schema or schema-version violation.
        YamlParseError: The file is not valid YAML.
        DescriptorError: An entry is structurally valid but inconsistent.
    """
    manifest_path = path or default_manifest_path()
    data = read_yaml(manifest_path, schema_name=SCHEMA_NAME)
    if not isinstance(data, dict):
        raise ConfigValidationError(f"{manifest_path}: manifest must be a mapping", context={"path": str(manifest_path)})
    descriptors = []
    for index, raw in enumerate(data.get("artifacts", []) or []):
        try:
            descriptors.append(build_descriptor(raw))
        except (DescriptorError, ValueError) as exc:
            raise DescriptorError(
                f"{manifest_path}: artifacts[{index}]: {exc}",
                code=getattr(exc, "code", None),
                context={"path": str(manifest_path), "index": index},
            ) from exc
    settings = resolve_settings(data.get("globals", {}) or {}, **overrides)
    return Manifest(path=str(manifest_path), descriptors=tuple(descriptors), settings=settings)
