"""Validation configuration: per-test-case expectations and tolerances.

Loaded from a YAML file, with selected fields overridable from the
environment (BOOKCHECK_EXPECTED_CURRENCY, BOOKCHECK_AGENCY_NAME).
"""

import logging
import os
from decimal import Decimal
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from bookcheck.errors import ConfigError

logger = logging.getLogger(__name__)

_ENV_PREFIX = "BOOKCHECK_"
_ENV_FIELDS = ("expected_currency", "agency_name")


class ValidationConfig(BaseModel):
    """Expectations passed by value into every stage validation."""

    expected_currency: str = ""
    agency_name: str = ""
    # Fee codes that may settle in another currency
    excluded_fee_codes: list[str] = Field(default_factory=lambda: ["CancelFee", "ChangeFee"])
    # Completeness findings on these trailing keys are warnings, not failures
    warning_only_suffixes: list[str] = Field(
        default_factory=lambda: ["departureTerminal", "arrivalTerminal", "fareBasisCode"]
    )
    rounding_tolerance: Decimal = Field(default=Decimal("0.01"), ge=0)
    allowed_booking_flows: list[str] = Field(default_factory=lambda: ["book", "holdbook"])

    @field_validator("expected_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("agency_name")
    @classmethod
    def strip_agency(cls, v: str) -> str:
        return v.strip()

    @field_validator("allowed_booking_flows")
    @classmethod
    def lowercase_flows(cls, v: list[str]) -> list[str]:
        return [flow.strip().lower() for flow in v]

    def is_excluded_fee(self, code: Optional[str]) -> bool:
        if not code:
            return False
        return code.casefold() in {c.casefold() for c in self.excluded_fee_codes}


def load_config(path: Optional[Union[str, Path]] = None) -> ValidationConfig:
    """Load a ValidationConfig from YAML, then apply environment overrides.

    Raises:
        ConfigError: If the file is missing, is not a mapping, or fails validation.
    """
    raw: dict = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")
        try:
            with open(config_path) as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"YAML parse error in {config_path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(
                f"Expected a YAML mapping in {config_path}, got {type(loaded).__name__}"
            )
        raw = loaded

    for name in _ENV_FIELDS:
        value = os.environ.get(_ENV_PREFIX + name.upper())
        if value:
            logger.debug("Config %s overridden from environment", name)
            raw[name] = value

    try:
        return ValidationConfig(**raw)
    except ValidationError as exc:
        lines = ["Invalid validation config:"]
        for err in exc.errors():
            loc = " -> ".join(str(x) for x in err["loc"])
            lines.append(f"  {loc}: {err['msg']}")
        raise ConfigError("\n".join(lines)) from exc
