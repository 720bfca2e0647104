"""Configuration loader and validation for reconciliation settings."""

from pathlib import Path
from typing import Any, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class CsvInputConfig(BaseModel):
    """Parsing options for one kind of CSV import."""

    encoding: str = "utf-8"
    delimiter: str = ","
    date_format: str = "%Y-%m-%d"
    default_currency: str = "USD"
    id_prefix: str = "TX"
    column_mappings: dict[str, str] = Field(default_factory=dict)


class InputConfig(BaseModel):
    """Configuration for statement and receipt imports."""

    statement: CsvInputConfig = Field(
        default_factory=lambda: CsvInputConfig(
            id_prefix="TX",
            column_mappings={
                "id": "ID",
                "date": "Date",
                "description": "Description",
                "amount": "Amount",
                "currency": "Currency",
            },
        )
    )
    receipts: CsvInputConfig = Field(
        default_factory=lambda: CsvInputConfig(
            id_prefix="RC",
            column_mappings={
                "id": "ID",
                "date": "Date",
                "vendor": "Vendor",
                "amount": "Amount",
                "currency": "Currency",
                "category": "Category",
                "document_ref": "Document",
            },
        )
    )


class MatchingConfig(BaseModel):
    """Configuration for the deterministic matching pass."""

    # Earlier revisions used 3 days
    date_window_days: int = Field(default=5, ge=0)
    amount_tolerance: float = Field(default=0.05, gt=0)


class CurrencyConfig(BaseModel):
    """Reporting currency and conversion rates for statistics."""

    reporting_currency: str = "USD"
    exchange_rates: dict[str, float] = Field(
        default_factory=lambda: {
            "USD": 1.0,
            "EUR": 1.08,
            "GBP": 1.27,
            "SEK": 0.096,
            "CAD": 0.74,
            "AUD": 0.65,
        }
    )


class SuggestionsConfig(BaseModel):
    """Configuration for the external fuzzy-match service."""

    endpoint: Optional[str] = None
    api_key_env: str = "RECEIPT_RECON_FUZZY_API_KEY"
    timeout_seconds: float = Field(default=30.0, gt=0)
    min_confidence: float = Field(default=0.7, ge=0, le=1)
    rerun_deterministic: bool = True


class StorageConfig(BaseModel):
    """Configuration for working set persistence."""

    directory: str = ".receipt_recon"
    quota_bytes: Optional[int] = Field(default=5 * 1024 * 1024, gt=0)


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "reconciliation_report_{date}_{time}.xlsx"
    include_timestamp: bool = True


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    unified: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Unified Report"))
    history: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Match History"))


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[str] = None


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    input: InputConfig = Field(default_factory=InputConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    currency: CurrencyConfig = Field(default_factory=CurrencyConfig)
    suggestions: SuggestionsConfig = Field(default_factory=SuggestionsConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return {
        "input": {
            "statement": {
                "encoding": "utf-8",
                "delimiter": ",",
                "date_format": "%Y-%m-%d",
                "default_currency": "USD",
                "id_prefix": "TX",
                "column_mappings": {
                    "id": "ID",
                    "date": "Date",
                    "description": "Description",
                    "amount": "Amount",
                    "currency": "Currency",
                },
            },
            "receipts": {
                "encoding": "utf-8",
                "delimiter": ",",
                "date_format": "%Y-%m-%d",
                "default_currency": "USD",
                "id_prefix": "RC",
                "column_mappings": {
                    "id": "ID",
                    "date": "Date",
                    "vendor": "Vendor",
                    "amount": "Amount",
                    "currency": "Currency",
                    "category": "Category",
                    "document_ref": "Document",
                },
            },
        },
        "matching": {
            "date_window_days": 5,
            "amount_tolerance": 0.05,
        },
        "currency": {
            "reporting_currency": "USD",
            "exchange_rates": {
                "USD": 1.0,
                "EUR": 1.08,
                "GBP": 1.27,
                "SEK": 0.096,
                "CAD": 0.74,
                "AUD": 0.65,
            },
        },
        "suggestions": {
            "endpoint": None,
            "api_key_env": "RECEIPT_RECON_FUZZY_API_KEY",
            "timeout_seconds": 30.0,
            "min_confidence": 0.7,
            "rerun_deterministic": True,
        },
        "storage": {
            "directory": ".receipt_recon",
            "quota_bytes": 5 * 1024 * 1024,
        },
        "output": {
            "excel": {
                "filename_template": "reconciliation_report_{date}_{time}.xlsx",
                "include_timestamp": True,
            },
            "sheets": {
                "summary": {"enabled": True, "name": "Summary"},
                "unified": {"enabled": True, "name": "Unified Report"},
                "history": {"enabled": True, "name": "Match History"},
            },
        },
        "logging": {
            "level": "INFO",
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            "file": None,
        },
    }


def load_config(config_path: Optional[Path] = None) -> ReconConfig:
    """
    Load configuration from a YAML file or use defaults.

    Args:
        config_path: Path to YAML configuration file (optional)

    Returns:
        ReconConfig object with loaded or default settings

    Raises:
        ConfigurationError: If the file is not valid YAML or fails validation
    """
    config_dict = get_default_config()

    if config_path and config_path.exists():
        logger.info(f"Loading configuration from: {config_path}")
        try:
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root in {config_path} must be a mapping")

        # Deep merge user config into defaults
        config_dict = _deep_merge(config_dict, user_config)
        config_dict["config_file_path"] = str(config_path)
    else:
        logger.info("Using default configuration")

    try:
        return ReconConfig(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def _deep_merge(base: dict, override: dict) -> dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary to merge on top

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def generate_default_config(output_path: Path) -> None:
    """
    Generate a default configuration file.

    Args:
        output_path: Path to write the configuration file
    """
    config_dict = get_default_config()

    yaml_content = """# Receipt reconciliation configuration
# Generated configuration file - customize as needed
#
# matching.date_window_days: days allowed between bank and receipt dates
# currency.exchange_rates: value of one unit in the reporting currency
# suggestions.endpoint: URL of the fuzzy-match service (leave empty to disable)

"""
    yaml_content += yaml.dump(config_dict, default_flow_style=False, sort_keys=False)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
