import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from .config import ConfigManager, RenderSettings, resolve_config_file
from .errors import ParseError
from .extract import extract_file
from .logging_utils import setup_logging
from .model.document import DocumentData
from .render.render import render_danfse

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


def _cli_extra(title: Optional[str], payer_city: Optional[str],
               payer_uf: Optional[str]) -> Dict[str, Any]:
    extra: Dict[str, Any] = {}
    if title:
        extra["title"] = title
    if payer_city:
        payer: Dict[str, str] = {"name": payer_city}
        if payer_uf:
            payer["uf"] = payer_uf
        extra["payer_city"] = payer
    return extra


def load_settings(config_file: Optional[Path], override_configs: Optional[List[str]],
                  title: Optional[str] = None, payer_city: Optional[str] = None,
                  payer_uf: Optional[str] = None) -> RenderSettings:
    config_path = resolve_config_file(config_file)
    try:
        config_manager = ConfigManager(str(config_path))
        if override_configs:
            logger.info("Applying CLI overrides: %s", override_configs)
        settings = config_manager.get_render_settings(
            override_configs, extra=_cli_extra(title, payer_city, payer_uf)
        )
    except ValueError as e:
        print(f"Error loading configuration: {e}")
        raise typer.Exit(code=1)

    if payer_uf and not payer_city:
        # A state alone only completes a city name coming from the configuration
        if settings.payer_city is None:
            print("Error: --payer-uf needs --payer-city or a [payer_city] name in the configuration.")
            raise typer.Exit(code=1)
        settings = settings.model_copy(
            update={"payer_city": settings.payer_city.model_copy(update={"uf": payer_uf})}
        )
    return settings


def load_document(input_file: Path, settings: RenderSettings) -> DocumentData:
    try:
        return extract_file(
            input_file,
            municipality=settings.municipality,
            payer_city=settings.payer_city,
            qr_url_template=settings.qr_url_template,
        )
    except ParseError as e:
        print(f"Error reading {input_file}: {e}")
        raise typer.Exit(code=1)


def document_summary(data: DocumentData) -> Dict[str, Any]:
    """The extracted data as plain JSON types, with the payer IBGE code added."""
    summary = data.model_dump(mode="json")
    summary["payer_municipality_code"] = data.payer_municipality_code
    summary["qr_url"] = data.qr_url
    return summary


def run_pipeline(
    input_file: Path,
    output_file: Optional[Path],
    log_level: LogLevel = LogLevel.INFO,
    config_file: Optional[Path] = None,
    override_configs: Optional[List[str]] = None,
    title: Optional[str] = None,
    payer_city: Optional[str] = None,
    payer_uf: Optional[str] = None,
) -> Path:
    """Extract an NFS-e XML file and render its DANFSe.

    Returns:
        Path of the written PDF; defaults to the input path with a ``.pdf`` suffix.
    """
    setup_logging(verbose=log_level == LogLevel.DEBUG,
                  level=logging.getLevelName(log_level.value))
    print(f"Input file: {input_file}")

    settings = load_settings(config_file, override_configs, title, payer_city, payer_uf)
    data = load_document(input_file, settings)
    if settings.payer_city is None and data.payer_municipality_code:
        logger.info("Payer city only known by IBGE code %s; use --payer-city to print its name.",
                    data.payer_municipality_code)

    if output_file is None:
        output_file = input_file.with_suffix(".pdf")
    try:
        render_danfse(data, output_file, settings)
    except OSError as e:
        print(f"Error writing {output_file}: {e}")
        raise typer.Exit(code=1)
    print(f"Rendering successful to {output_file}")
    return output_file


def run_inspect(
    input_file: Path,
    log_level: LogLevel = LogLevel.INFO,
    config_file: Optional[Path] = None,
    override_configs: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Print the extracted document as JSON and return it."""
    setup_logging(verbose=log_level == LogLevel.DEBUG,
                  level=logging.getLevelName(log_level.value))
    settings = load_settings(config_file, override_configs)
    summary = document_summary(load_document(input_file, settings))
    print(json.dumps(summary, indent=2, ensure_ascii=False))
    return summary
