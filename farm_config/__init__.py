"""
farm_config -- single public entrypoint for posting configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Orchestrators receive the returned
    ``PostingConfig`` explicitly; nothing reads YAML or environment
    variables on its own.

Architecture position:
    Configuration.  Sits above ``farm_kernel`` and below ``farm_modules``.
    The kernel MUST NEVER import from ``farm_config``.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``ValueError`` -- schema validation failures (missing keys, missing
      account roles, bad currency).

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``FARM_CONFIG_TRACE`` log entry with config id, version and checksum,
    tying posted groups back to the configuration that produced them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from farm_config.loader import load_yaml_file, parse_posting_config
from farm_config.schema import REQUIRED_ACCOUNT_ROLES, NumberingDef, PostingConfig

_logger = logging.getLogger("farm_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    config_name: str = "default",
    config_dir: Path | None = None,
) -> PostingConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_name: Name of the configuration set (a subdirectory holding
            ``root.yaml``).
        config_dir: Override path to the configuration sets directory.
            Defaults to farm_config/sets/.

    Raises:
        FileNotFoundError: If the configuration set does not exist.
        ValueError: If configuration validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    root_file = sets_dir / config_name / "root.yaml"
    if not root_file.exists():
        raise FileNotFoundError(f"Configuration set not found: {root_file}")

    config = parse_posting_config(load_yaml_file(root_file))

    _logger.info(
        "FARM_CONFIG_TRACE",
        extra={
            "trace_type": "FARM_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "currency_code": config.currency_code,
            "account_role_count": len(config.account_codes),
        },
    )
    return config


__all__ = [
    "NumberingDef",
    "PostingConfig",
    "REQUIRED_ACCOUNT_ROLES",
    "get_active_config",
]
