"""
The ``aws`` module: active AWS profile and region.
"""
import configparser
import logging
from pathlib import Path
from typing import Optional

from ..config import ModuleOptions
from ..context import Context
from .base import Detection, ModuleDescriptor, ModuleResult

logger = logging.getLogger(__name__)


def _config_region(context: Context, profile: Optional[str]) -> Optional[str]:
    """Look up a profile's region in the AWS CLI config file."""
    config_file = context.get_env("AWS_CONFIG_FILE")
    path = Path(config_file) if config_file else context.home / ".aws" / "config"
    if not path.is_file():
        return None

    parser = configparser.ConfigParser()
    try:
        parser.read(path, encoding="utf-8")
    except (configparser.Error, OSError) as e:
        logger.debug(f"Failed to read {path}: {e}")
        return None

    section = f"profile {profile}" if profile and profile != "default" else "default"
    if not parser.has_section(section):
        return None
    return parser.get(section, "region", fallback=None)


def aws(context: Context, options: ModuleOptions) -> Optional[ModuleResult]:
    profile = context.get_env("AWS_VAULT") or context.get_env("AWS_PROFILE")
    region = context.get_env("AWS_REGION") or context.get_env("AWS_DEFAULT_REGION")
    if region is None and profile is not None:
        region = _config_region(context, profile)

    if profile is None and region is None:
        return None

    aliases = options.get("region_aliases", {}) or {}
    if region is not None:
        region = aliases.get(region, region)

    return ModuleResult.of(profile=profile, region=region)


AWS = ModuleDescriptor(
    name="aws",
    description="The current AWS region and profile",
    probe=aws,
    detection=Detection(always_on=True),
    format="on [$symbol($profile )(\\($region\\) )]($style)",
    style="bold yellow",
    symbol="☁️  ",
)

MODULES = (AWS,)
