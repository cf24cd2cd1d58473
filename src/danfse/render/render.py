import logging
from pathlib import Path
from typing import Optional, Union

from danfse.config.models import RenderSettings
from danfse.model.document import DocumentData
from danfse.render.canvas import PdfCanvas
from danfse.render.grid import GridSpec, LayoutContext
from danfse.render.sections import (
    render_access_key,
    render_aggregate_taxes,
    render_border,
    render_federal_taxation,
    render_header,
    render_identification,
    render_intermediary,
    render_issuer,
    render_municipal_taxation,
    render_notes,
    render_payer,
    render_service,
    render_totals,
)

logger = logging.getLogger(__name__)

__all__ = [
    'SECTION_ORDER',
    'assemble',
    'render_danfse',
]

SECTION_ORDER = (
    render_header,
    render_access_key,
    render_identification,
    render_issuer,
    render_payer,
    render_intermediary,
    render_service,
    render_municipal_taxation,
    render_federal_taxation,
    render_totals,
    render_aggregate_taxes,
    render_notes,
    render_border,
)


def assemble(data: DocumentData, canvas, grid: GridSpec,
             logo_path: Optional[Path] = None) -> LayoutContext:
    """Run every section in order on ``canvas`` and return the final context."""
    ctx = LayoutContext(canvas=canvas, grid=grid, y=grid.top, logo_path=logo_path)
    for section in SECTION_ORDER:
        ctx = section(ctx, data)
        logger.debug("%s ends at y=%.1f mm", section.__name__, ctx.y)
    return ctx


def render_danfse(data: DocumentData, output_path: Optional[Union[str, Path]] = None,
                  settings: Optional[RenderSettings] = None) -> bytes:
    """Render a DANFSe to PDF.

    Args:
        data: The extracted document.
        output_path: Optional file the PDF is also written to.
        settings: Title and logo; defaults are used when omitted.

    Returns:
        The PDF bytes.
    """
    settings = settings or RenderSettings()
    canvas = PdfCanvas(title=settings.title)
    try:
        assemble(data, canvas, GridSpec.from_fractions(), logo_path=settings.logo_path)
    finally:
        pdf_data = canvas.finish()

    if output_path is not None:
        with open(output_path, 'wb') as f:
            f.write(pdf_data)
        logger.info("DANFSe for NFS-e %s written to %s",
                    data.identification.nfse_number, output_path)
    return pdf_data
