from dataclasses import dataclass


@dataclass(frozen=True)
class FontSpec:
    name: str
    size: float  # points


LABEL = FontSpec("Helvetica-Bold", 7)
VALUE = FontSpec("Helvetica", 8)
TITLE = FontSpec("Helvetica-Bold", 9)
VALUE_BOLD = FontSpec("Helvetica-Bold", 8)
SMALL = FontSpec("Helvetica", 6)

# mm
LABEL_LINE_HEIGHT = 4.0
VALUE_LINE_HEIGHT = 4.0
SMALL_LINE_HEIGHT = 2.5
TITLE_LINE_HEIGHT = 5.0
