"""
payroll_config -- single public entrypoint for jurisdiction configuration.

Responsibility:
    Provides the ONLY way to obtain jurisdiction tables at runtime through
    ``get_jurisdiction()``.  No engine reads configuration files; callers
    load a ``JurisdictionConfig`` here and pass its ``payroll`` rules and
    ``credit`` policy to the engines.

Architecture position:
    Configuration -- YAML-driven, validated at load time.  This package
    sits above ``payroll_kernel`` and ``payroll_engines``; neither of them
    imports from ``payroll_config``.

Invariants enforced:
    - Single entrypoint: all runtime tables flow through ``get_jurisdiction()``.
    - Load-time validation: a document must pass ``validate_jurisdiction``
      and the engines' structural checks before a config is returned.
    - Deterministic: the same YAML always produces the same checksum.

Failure modes:
    - ``JurisdictionNotFoundError`` -- no file declares the requested code.
    - ``ConfigurationError`` -- validation or structural failures.

Audit relevance:
    Every successful ``get_jurisdiction()`` call emits a
    ``PAYROLL_CONFIG_TRACE`` log entry containing the jurisdiction code,
    regime, effective date and checksum, which ties each payslip back to
    the exact tables that produced it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from payroll_config.loader import load_yaml_file, parse_jurisdiction
from payroll_config.schema import CreditPolicy, JurisdictionConfig, JurisdictionScope
from payroll_config.validator import ConfigValidationResult, validate_jurisdiction
from payroll_kernel.exceptions import ConfigurationError, JurisdictionNotFoundError

_logger = logging.getLogger("payroll_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "jurisdictions"

__all__ = [
    "ConfigValidationResult",
    "CreditPolicy",
    "JurisdictionConfig",
    "JurisdictionScope",
    "get_jurisdiction",
    "list_jurisdictions",
    "validate_jurisdiction",
]


def get_jurisdiction(code: str, config_dir: Path | None = None) -> JurisdictionConfig:
    """The ONLY public configuration entrypoint.

    Contract:
        Engines never read configuration; everything jurisdiction-specific
        reaches them through the returned ``JurisdictionConfig``.

    Guarantees:
        - The returned config has passed document validation and the
          engines' structural table checks.
        - A ``PAYROLL_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - No caching across calls; callers hold the config for the
          duration of a payroll run.

    Args:
        code: Jurisdiction code declared in ``scope.code`` (case-insensitive).
        config_dir: Override path to the jurisdictions directory.
            Defaults to payroll_config/jurisdictions/.

    Raises:
        JurisdictionNotFoundError: no document declares ``code``.
        ConfigurationError: the document fails validation.
    """
    directory = config_dir or _DEFAULT_CONFIG_DIR
    path, data = _find_document(directory, code)

    validation = validate_jurisdiction(data)
    if not validation.is_valid:
        raise ConfigurationError(
            f"jurisdiction {code.upper()} ({path.name})",
            "validation failed:\n" + "\n".join(f"  - {e}" for e in validation.errors),
        )

    config = parse_jurisdiction(data)

    _logger.info(
        "PAYROLL_CONFIG_TRACE",
        extra={
            "trace_type": "PAYROLL_CONFIG_TRACE",
            "jurisdiction": config.scope.code,
            "regime": config.scope.regime,
            "effective_from": config.scope.effective_from.isoformat(),
            "checksum": config.checksum,
            "source": path.name,
            "warning_count": len(validation.warnings),
        },
    )
    return config


def list_jurisdictions(config_dir: Path | None = None) -> tuple[str, ...]:
    """Codes of every jurisdiction document in ``config_dir``, sorted."""
    directory = config_dir or _DEFAULT_CONFIG_DIR
    codes = {
        str(data["scope"]["code"]).upper()
        for _, data in _iter_documents(directory)
        if isinstance(data.get("scope"), dict) and "code" in data["scope"]
    }
    return tuple(sorted(codes))


def _iter_documents(directory: Path):
    if not directory.is_dir():
        raise JurisdictionNotFoundError("*", str(directory))
    for path in sorted(directory.glob("*.yaml")):
        yield path, load_yaml_file(path)


def _find_document(directory: Path, code: str) -> tuple[Path, dict[str, Any]]:
    wanted = code.upper()
    for path, data in _iter_documents(directory):
        scope = data.get("scope")
        if isinstance(scope, dict) and str(scope.get("code", "")).upper() == wanted:
            return path, data
    raise JurisdictionNotFoundError(wanted, str(directory))
