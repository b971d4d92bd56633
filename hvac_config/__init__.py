"""
hvac_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``WorkflowConfig``.  YAML
    loading is internal to this package.

Architecture position:
    Configuration -- sits above ``hvac_kernel`` and ``hvac_engines``.  The
    kernel MUST NEVER import from ``hvac_config``; ``hvac_config.bridges``
    translates the config into kernel and engine inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Values are validated at load time; out-of-range values raise.
    - Same YAML always produces the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- out-of-range value or unknown timezone.
    - ``KeyError`` -- missing ``config_id`` or ``version``.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``HVAC_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying billing figures to the rates that produced them.
"""

from __future__ import annotations

import logging
from pathlib import Path

from hvac_config.loader import load_yaml_file, parse_workflow_config
from hvac_config.schema import WorkflowConfig

_logger = logging.getLogger("hvac_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> WorkflowConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override path to a workflow YAML file.  Defaults to the
            packaged ``defaults.yaml``.

    Non-goals:
        Does NOT cache; callers hold the returned config.
    """
    source = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    config = parse_workflow_config(load_yaml_file(source))

    _logger.info(
        "HVAC_CONFIG_TRACE",
        extra={
            "trace_type": "HVAC_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "timezone": config.timezone,
            "source_path": str(source),
        },
    )
    return config


__all__ = ["WorkflowConfig", "get_active_config"]
