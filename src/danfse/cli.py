import typer
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from danfse.danfse import LogLevel, run_inspect, run_pipeline

app = typer.Typer()


@dataclass
class GlobalOptions:
    log_level: LogLevel
    config_file: Optional[Path]
    override_configs: Optional[List[str]]


@app.callback()
def main_callback(
    ctx: typer.Context,
    log_level: LogLevel = typer.Option(LogLevel.INFO, "--log-level", help="Set the log level for console output."),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to the configuration TOML file. Defaults to danfse.toml in XDG config home or CWD."),
    override_configs: List[str] = typer.Option(None, "--set", help="Override configuration settings using path.to.key=value format. Can be used multiple times."),
):
    """DANFSe generator for national NFS-e XML files."""
    ctx.obj = GlobalOptions(log_level=log_level, config_file=config_file, override_configs=override_configs)


@app.command()
def generate(
    ctx: typer.Context,
    input_file: Path = typer.Argument(..., exists=True, file_okay=True, dir_okay=False, readable=True, help="NFS-e XML file."),
    output_file: Optional[Path] = typer.Option(None, "--output", "-o", help="Output PDF file path. Defaults to the input file with a .pdf suffix."),
    payer_city: Optional[str] = typer.Option(None, "--payer-city", help="Name of the payer city; the XML only has its IBGE code."),
    payer_uf: Optional[str] = typer.Option(None, "--payer-uf", help="State (UF) of the payer city, used with --payer-city."),
    title: Optional[str] = typer.Option(None, "--title", help="PDF document title."),
):
    """Renders the DANFSe PDF of an NFS-e XML file."""
    global_opts: GlobalOptions = ctx.obj
    run_pipeline(
        input_file=input_file,
        output_file=output_file,
        log_level=global_opts.log_level,
        config_file=global_opts.config_file,
        override_configs=global_opts.override_configs,
        title=title,
        payer_city=payer_city,
        payer_uf=payer_uf,
    )


@app.command()
def inspect(
    ctx: typer.Context,
    input_file: Path = typer.Argument(..., exists=True, file_okay=True, dir_okay=False, readable=True, help="NFS-e XML file."),
):
    """Prints the data extracted from an NFS-e XML file as JSON."""
    global_opts: GlobalOptions = ctx.obj
    run_inspect(
        input_file=input_file,
        log_level=global_opts.log_level,
        config_file=global_opts.config_file,
        override_configs=global_opts.override_configs,
    )


if __name__ == "__main__":
    app()
