"""Configuration loader and validation for reconciliation settings."""

from pathlib import Path
from typing import Any, Literal, Optional
import logging

import yaml
from pydantic import BaseModel, Field, ValidationError

from .utils.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class LedgerInputConfig(BaseModel):
    """Configuration for ledger text exports."""

    header_keywords: list[str] = Field(
        default_factory=lambda: [
            "DATA",
            "DESCRIÇÃO",
            "HISTÓRICO",
            "DOCUMENTO",
            "VALOR",
            "DÉBITO",
            "CRÉDITO",
            "SALDO",
            "LANÇAMENTO",
            "LANCAMENTO",
        ]
    )
    # Source-name substrings that force the sign of every amount in the file
    payable_hints: list[str] = Field(default_factory=lambda: ["PAGAR", "PAYABLE"])
    receivable_hints: list[str] = Field(default_factory=lambda: ["RECEBER", "RECEIVABLE"])


class InputConfig(BaseModel):
    """Configuration for input decoding and parsing."""

    encoding: str = "utf-8"
    fallback_encoding: str = "latin-1"
    ledger: LedgerInputConfig = Field(default_factory=LedgerInputConfig)


class MatchingConfig(BaseModel):
    """Configuration for the matching engine."""

    mode: Literal["fuzzy", "strict"] = "fuzzy"
    amount_tolerance: float = 0.01
    date_window_days: int = 2
    min_similarity: float = 0.55
    allow_many_to_one: bool = True
    # Description-keyed value mismatches below this are treated as rounding noise
    value_mismatch_min_difference: float = 1.00
    relax_short_descriptions: bool = False
    suspicious_keywords: list[str] = Field(
        default_factory=lambda: [
            "tarifa",
            "taxa",
            "encargo",
            "juros",
            "multa",
            "iof",
            "cobranca",
            "manutencao",
            "anuidade",
            "servico bancario",
        ]
    )
    generic_account_codes: list[str] = Field(
        default_factory=lambda: ["0", "00", "000", "1", "9"]
    )
    min_account_code_length: int = 3


class PdfConfig(BaseModel):
    """Configuration for PDF statement extraction."""

    extraction_timeout_seconds: float = 60.0
    unknown_issuer_strategy: Literal["most_transactions", "confidence"] = "most_transactions"
    min_issuer_keyword_hits: int = 1


class ValidationConfig(BaseModel):
    """Configuration for account validation."""

    enabled: bool = True
    chart_source: str = "default"


class SheetConfig(BaseModel):
    """Configuration for a report sheet."""

    enabled: bool = True
    name: str


class SheetsConfig(BaseModel):
    """Configuration for all report sheets."""

    summary: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Summary"))
    divergences: SheetConfig = Field(default_factory=lambda: SheetConfig(name="Divergences"))
    validation: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Account Validation")
    )
    parsing_issues: SheetConfig = Field(
        default_factory=lambda: SheetConfig(name="Parsing Issues")
    )


class ExcelOutputConfig(BaseModel):
    """Configuration for Excel output."""

    filename_template: str = "reconciliation_{job_id}_{date}_{time}.xlsx"


class OutputConfig(BaseModel):
    """Configuration for output."""

    excel: ExcelOutputConfig = Field(default_factory=ExcelOutputConfig)
    sheets: SheetsConfig = Field(default_factory=SheetsConfig)


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ReconConfig(BaseModel):
    """Main configuration model for reconciliation."""

    input: InputConfig = Field(default_factory=InputConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    pdf: PdfConfig = Field(default_factory=PdfConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file_path: Optional[str] = None


def get_default_config() -> dict[str, Any]:
    """Return the default configuration as a dictionary."""
    return ReconConfig().model_dump(exclude={"config_file_path"})


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
            with open(config_path, "r", encoding="utf-8") as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {config_path}")

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

    yaml_content = """# Ledger vs. bank statement reconciliation configuration
# Generated configuration file - customize as needed

"""
    yaml_content += yaml.dump(
        config_dict, default_flow_style=False, sort_keys=False, allow_unicode=True
    )

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(yaml_content)

    logger.info(f"Generated configuration file: {output_path}")
