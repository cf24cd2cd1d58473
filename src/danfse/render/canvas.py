"""Position based drawing on top of a reportlab canvas.

The layout code works in millimetres with the origin at the top left corner
of the page and Y growing downwards, like a sheet of paper. :class:`PdfCanvas`
converts to reportlab's bottom-up point coordinates.
"""

import io
import logging
from pathlib import Path
from typing import Callable, List, Optional, Union

from PIL import Image as PILImage
from reportlab.graphics import renderPDF
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from danfse.errors import AssetMissing
from danfse.render.styles import FontSpec, VALUE

logger = logging.getLogger(__name__)

PT_TO_MM = 25.4 / 72

PDF_CREATOR = "NFS-e PDF Generator"
PDF_TITLE = "DANFSe"
PDF_SUBJECT = "Documento Auxiliar da NFS-e"

# Called once per page when the document is saved
PageDecoration = Callable[[int, int], None]


class FrameCanvas(canvas.Canvas):
    """Canvas that defers page decorations until the page count is known.

    Every finished page is kept as a saved state; :meth:`save` replays them
    and runs the registered decorations on each before emitting the page.
    """

    def __init__(self, *args, **kwargs):
        canvas.Canvas.__init__(self, *args, **kwargs)
        self._saved_page_states = []
        self._page_decorations: List[PageDecoration] = []

    def add_page_decoration(self, decoration: PageDecoration) -> None:
        self._page_decorations.append(decoration)

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        num_pages = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            for decoration in self._page_decorations:
                decoration(self._pageNumber, num_pages)
            canvas.Canvas.showPage(self)
        canvas.Canvas.save(self)


class PdfCanvas:
    """Millimetre, top-down drawing surface producing a single PDF.

    Args:
        title: Document title stored in the PDF metadata.
        page_size: Page size in points; the layout is designed for A4.
    """

    def __init__(self, title: str = PDF_TITLE, page_size=A4):
        self._buffer = io.BytesIO()
        self._canvas = FrameCanvas(self._buffer, pagesize=page_size)
        self._canvas.setCreator(PDF_CREATOR)
        self._canvas.setTitle(title)
        self._canvas.setSubject(PDF_SUBJECT)
        self.page_width = page_size[0] / mm
        self.page_height = page_size[1] / mm
        self._result: Optional[bytes] = None

    @property
    def page_number(self) -> int:
        return self._canvas.getPageNumber()

    def _y(self, y: float) -> float:
        """Top-down mm to reportlab points."""
        return (self.page_height - y) * mm

    def _use_font(self, font: FontSpec) -> None:
        self._canvas.setFont(font.name, font.size)

    def string_width(self, text: str, font: FontSpec) -> float:
        return pdfmetrics.stringWidth(text, font.name, font.size) / mm

    def split_lines(self, text: str, width: float, font: FontSpec) -> List[str]:
        if not text:
            return []
        return simpleSplit(text, font.name, font.size, width * mm)

    def count_lines(self, text: str, width: float, font: FontSpec) -> int:
        """Number of lines ``text`` occupies when wrapped to ``width``; at least one."""
        return max(1, len(self.split_lines(text, width, font)))

    def cell(self, x: float, y: float, w: float, h: float, text: str,
             font: FontSpec = VALUE, align: str = "L") -> None:
        """Draw one line of text vertically centred in the box at (x, y)."""
        if not text:
            return
        self._use_font(font)
        baseline = self._y(y + (h + font.size * PT_TO_MM * 0.7) / 2)
        if align == "C":
            self._canvas.drawCentredString((x + w / 2) * mm, baseline, text)
        elif align == "R":
            self._canvas.drawRightString((x + w) * mm, baseline, text)
        else:
            self._canvas.drawString(x * mm, baseline, text)

    def multi_cell(self, x: float, y: float, w: float, line_height: float, text: str,
                   font: FontSpec = VALUE, align: str = "L") -> float:
        """Draw wrapped text and return the Y just below the last line."""
        lines = self.split_lines(text, w, font) or [""]
        for i, line in enumerate(lines):
            self.cell(x, y + i * line_height, w, line_height, line, font, align)
        return y + len(lines) * line_height

    def line(self, x1: float, y1: float, x2: float, y2: float, width: float = 0.2) -> None:
        self._canvas.setLineWidth(width * mm)
        self._canvas.setStrokeColor(colors.black)
        self._canvas.line(x1 * mm, self._y(y1), x2 * mm, self._y(y2))

    def rect(self, x: float, y: float, w: float, h: float, width: float = 0.3) -> None:
        self._canvas.setLineWidth(width * mm)
        self._canvas.setStrokeColor(colors.black)
        self._canvas.rect(x * mm, self._y(y + h), w * mm, h * mm, stroke=1, fill=0)

    def image(self, path: Union[str, Path], x: float, y: float, w: float,
              h: Optional[float] = None) -> float:
        """Draw an image scaled to width ``w``; returns the drawn height.

        Raises:
            AssetMissing: If the file does not exist or is not a readable image.
        """
        path = Path(path)
        if not path.is_file():
            raise AssetMissing(path)
        try:
            with PILImage.open(path) as img:
                px_w, px_h = img.size
        except OSError as e:
            raise AssetMissing(path) from e
        if h is None:
            h = w * px_h / px_w if px_w else w
        self._canvas.drawImage(ImageReader(str(path)), x * mm, self._y(y + h),
                               width=w * mm, height=h * mm, mask="auto")
        return h

    def qr_code(self, payload: str, x: float, y: float, size: float) -> None:
        """Draw a square QR code of ``size`` mm with its top left corner at (x, y)."""
        qr = QrCodeWidget(payload)
        bounds = qr.getBounds()
        width = bounds[2] - bounds[0]
        height = bounds[3] - bounds[1]
        side = size * mm
        drawing = Drawing(side, side, transform=[side / width, 0, 0, side / height, 0, 0])
        drawing.add(qr)
        renderPDF.draw(drawing, self._canvas, x * mm, self._y(y + size))

    def new_page(self) -> None:
        self._canvas.showPage()

    def add_page_decoration(self, decoration: PageDecoration) -> None:
        """Register a callable run on every page once the document is finished."""
        self._canvas.add_page_decoration(decoration)

    def finish(self) -> bytes:
        """Close the document and return the PDF bytes. Idempotent."""
        if self._result is None:
            self._canvas.showPage()
            self._canvas.save()
            self._result = self._buffer.getvalue()
            self._buffer.close()
            logger.debug("Finished PDF with %d page(s), %d bytes",
                         len(self._canvas._saved_page_states), len(self._result))
        return self._result
