"""The blocks of the DANFSe, top to bottom.

Every section takes the layout context and the document data and returns
the context positioned below what it drew.
"""

import logging
from typing import List

from danfse.errors import AssetMissing
from danfse.model.document import DocumentData, Party
from danfse.render.grid import (
    CELL_PADDING,
    FALLBACK,
    Field,
    LayoutContext,
    render_row,
    row_height,
)
from danfse.render.styles import (
    LABEL,
    LABEL_LINE_HEIGHT,
    SMALL,
    SMALL_LINE_HEIGHT,
    TITLE,
    TITLE_LINE_HEIGHT,
    VALUE,
    VALUE_BOLD,
    VALUE_LINE_HEIGHT,
)

logger = logging.getLogger(__name__)

DOCUMENT_TITLE = "DANFSe v1.0"
DOCUMENT_SUBTITLE = "Documento Auxiliar da NFS-e"
AUTHENTICITY_MESSAGE = (
    "A autenticidade desta NFS-e pode ser verificada pela leitura deste código QR "
    "ou pela consulta da chave de acesso no portal nacional da NFS-e"
)

# Header geometry (mm)
HEADER_HEIGHT = 12.0
LOGO_WIDTH = 50.0
TITLE_X = 70.0
TITLE_WIDTH = 50.0
AUTHORITY_X = 145.0
AUTHORITY_WIDTH = 55.0
CREST_SIZE = 11.0

QR_SIZE = 10.0
SECTION_GAP = 1.0


def _separator(ctx: LayoutContext) -> LayoutContext:
    ctx.canvas.line(ctx.grid.margin, ctx.y, ctx.grid.right, ctx.y)
    return ctx.advance(SECTION_GAP)


def _begin_section(ctx: LayoutContext, title: str, first_row: List[Field]) -> LayoutContext:
    """Separator and title, kept on the same page as the first row."""
    ctx = ctx.ensure_space(SECTION_GAP + TITLE_LINE_HEIGHT + row_height(ctx, first_row))
    ctx = _separator(ctx)
    ctx.canvas.cell(ctx.grid.left, ctx.y, ctx.grid.right - ctx.grid.left,
                    TITLE_LINE_HEIGHT, title, TITLE)
    return ctx.advance(TITLE_LINE_HEIGHT)


def _rows(ctx: LayoutContext, title: str, rows: List[List[Field]]) -> LayoutContext:
    ctx = _begin_section(ctx, title, rows[0])
    for fields in rows:
        ctx = render_row(ctx, fields)
    return ctx.advance(SECTION_GAP)


def _code_and_description(code: str, description: str) -> str:
    if code and description:
        return f"{code} - {description}"
    return code or description


def render_header(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    canvas = ctx.canvas
    top = ctx.y
    bottom = top + HEADER_HEIGHT

    if ctx.logo_path is not None:
        try:
            logo_height = canvas.image(ctx.logo_path, ctx.grid.margin, top, LOGO_WIDTH)
            bottom = max(bottom, top + logo_height)
        except AssetMissing as e:
            logger.debug("NFS-e logo not drawn: %s", e)

    canvas.cell(TITLE_X, top, TITLE_WIDTH, 4, DOCUMENT_TITLE, TITLE, align="C")
    canvas.cell(TITLE_X, top + 4, TITLE_WIDTH, 4, DOCUMENT_SUBTITLE, TITLE, align="C")

    authority = data.authority
    if authority.crest_path is not None:
        try:
            canvas.image(authority.crest_path, AUTHORITY_X - CREST_SIZE, top,
                         CREST_SIZE, CREST_SIZE)
        except AssetMissing as e:
            logger.debug("Municipality crest not drawn: %s", e)

    canvas.cell(AUTHORITY_X, top, AUTHORITY_WIDTH, 3, authority.name, VALUE_BOLD, align="R")
    y = top + 3
    for line in (authority.department, authority.phone, authority.email):
        if line:
            canvas.cell(AUTHORITY_X, y, AUTHORITY_WIDTH, SMALL_LINE_HEIGHT, line, SMALL, align="R")
            y += SMALL_LINE_HEIGHT
    return ctx.at(max(bottom, y)).advance(SECTION_GAP)


def render_access_key(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    ctx = _separator(ctx)
    width = ctx.grid.right - ctx.grid.left
    ctx.canvas.cell(ctx.grid.left, ctx.y, width, LABEL_LINE_HEIGHT,
                    "Chave de Acesso da NFS-e", LABEL)
    ctx.canvas.cell(ctx.grid.left, ctx.y + LABEL_LINE_HEIGHT, width, VALUE_LINE_HEIGHT,
                    data.identification.access_key, VALUE)
    return ctx.advance(LABEL_LINE_HEIGHT + VALUE_LINE_HEIGHT + SECTION_GAP)


def render_identification(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    """NFS-e and DPS numbers and dates, with the QR code in the fourth column.

    The QR code is placed independently of the text rows; the block ends
    below whichever of the two reaches further down.
    """
    ident = data.identification
    rows = [
        [
            Field("Número da NFS-e", ident.nfse_number, 0),
            Field("Competência da NFS-e", ident.competence, 1),
            Field("Data e Hora da emissão da NFS-e", ident.processed_at, 2),
        ],
        [
            Field("Número da DPS", ident.dps_number, 0),
            Field("Série da DPS", ident.dps_series, 1),
            Field("Data e Hora da emissão da DPS", ident.dps_issued_at, 2),
        ],
        [
            Field("Número da DFSe", ident.dfse_number, 0),
        ],
    ]
    canvas = ctx.canvas
    qr_column = len(ctx.grid.columns) - 1
    message_x = ctx.grid.column_x(qr_column)
    message_width = ctx.grid.span_width(qr_column) - 2 * CELL_PADDING
    message_lines = canvas.count_lines(AUTHENTICITY_MESSAGE, message_width, SMALL)
    qr_block = 1 + QR_SIZE + 0.5 + message_lines * 2
    text_block = sum(row_height(ctx, r) for r in rows)

    ctx = ctx.ensure_space(SECTION_GAP + max(qr_block, text_block))
    ctx = _separator(ctx)
    top = ctx.y

    canvas.qr_code(data.qr_url, message_x + 1, top + 1, QR_SIZE)
    message_bottom = canvas.multi_cell(message_x, top + 1 + QR_SIZE + 0.5, message_width, 2,
                                       AUTHENTICITY_MESSAGE, SMALL)

    for fields in rows:
        ctx = render_row(ctx, fields)
    return ctx.at(message_bottom).advance(SECTION_GAP)


def _party_rows(party: Party) -> List[List[Field]]:
    return [
        [
            Field("CNPJ / CPF / NIF", party.tax_id, 0),
            Field("Inscrição Municipal", party.municipal_registration, 1),
            Field("Telefone", party.phone, 2),
        ],
        [
            Field("Nome / Nome Empresarial", party.name, 0, span=2, wrap=True),
            Field("E-mail", party.email, 2, span=2, wrap=True),
        ],
        [
            Field("Endereço", party.address.one_line(), 0, span=2, wrap=True),
            Field("Município", party.municipality, 2),
            Field("CEP", party.address.postal_code, 3),
        ],
    ]


def render_issuer(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    issuer = data.issuer
    rows = _party_rows(issuer)
    rows.append([
        Field("Simples Nacional na Data de Competência", issuer.simples_nacional, 0,
              span=2, wrap=True),
        Field("Regime de Apuração Tributária pelo SN", issuer.simples_regime, 2,
              span=2, wrap=True),
    ])
    return _rows(ctx, "EMITENTE DA NFS-e", rows)


def render_payer(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    return _rows(ctx, "TOMADOR DO SERVIÇO", _party_rows(data.payer))


def render_intermediary(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    ctx = ctx.ensure_space(SECTION_GAP + TITLE_LINE_HEIGHT)
    ctx = _separator(ctx)
    ctx.canvas.cell(ctx.grid.left, ctx.y, ctx.grid.right - ctx.grid.left, TITLE_LINE_HEIGHT,
                    "INTERMEDIÁRIO DO SERVIÇO NÃO IDENTIFICADO NA NFS-e", TITLE)
    return ctx.advance(TITLE_LINE_HEIGHT + SECTION_GAP)


def render_service(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    service = data.service
    rows = [
        [
            Field("Código de Tributação Nacional", service.classification(), 0, max_lines=2),
            Field("Código de Tributação Municipal",
                  _code_and_description(service.municipal_code, service.municipal_description),
                  1, max_lines=2),
            Field("Local da Prestação", data.identification.rendering_locality, 2),
            Field("País da Prestação", service.rendering_country, 3),
        ],
        [
            Field("Descrição do Serviço", service.description, 0, span=3, wrap=True),
            Field("Código NBS", service.nbs_code, 3),
        ],
    ]
    return _rows(ctx, "SERVIÇO PRESTADO", rows)


def render_municipal_taxation(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    tax = data.taxation
    values = data.values
    rows = [
        [
            Field("Tributação do ISSQN", tax.tax_incidence, 0),
            Field("País Resultado da Prestação do Serviço", tax.result_country, 1),
            Field("Município de Incidência do ISSQN", data.identification.incidence_locality, 2),
            Field("Regime Especial de Tributação", tax.special_regime, 3, wrap=True),
        ],
        [
            Field("Tipo de Imunidade", tax.immunity_type, 0, max_lines=3),
            Field("Suspensão da Exigibilidade do ISSQN", tax.suspension_type, 1, wrap=True),
            Field("Número Processo Suspensão", tax.suspension_process, 2),
            Field("Benefício Municipal", tax.benefit_number, 3),
        ],
        [
            Field("Valor do Serviço", values.service_value, 0),
            Field("Desconto Incondicionado", values.unconditional_discount, 1),
            Field("Total Deduções/Reduções", values.deductions, 2),
            Field("Cálculo do BM", values.benefit_calculation, 3),
        ],
        [
            Field("BC ISSQN", values.issqn_base, 0),
            Field("Alíquota Aplicada", tax.applied_rate, 1),
            Field("Retenção do ISSQN", tax.issqn_withholding, 2),
            Field("ISSQN Apurado", values.issqn_amount, 3),
        ],
    ]
    return _rows(ctx, "TRIBUTAÇÃO MUNICIPAL", rows)


def render_federal_taxation(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    values = data.values
    rows = [
        [
            Field("IRRF", values.irrf, 0),
            Field("CP", values.cp, 1),
            Field("CSLL", values.csll, 2),
        ],
        [
            Field("PIS", values.pis, 0),
            Field("COFINS", values.cofins, 1),
            Field("Retenção do PIS/COFINS", data.taxation.pis_cofins_withholding, 2, wrap=True),
            Field("TOTAL TRIBUTAÇÃO FEDERAL", values.total_federal, 3),
        ],
    ]
    return _rows(ctx, "TRIBUTAÇÃO FEDERAL", rows)


def render_totals(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    values = data.values
    rows = [
        [
            Field("Valor do Serviço", values.service_value, 0),
            Field("Desconto Condicionado", values.conditional_discount, 1),
            Field("Desconto Incondicionado", values.unconditional_discount, 2),
            Field("ISSQN Retido", values.issqn_withheld, 3),
        ],
        [
            Field("IRRF, CP, CSLL - Retidos", values.federal_withheld, 0),
            Field("PIS/COFINS Retidos", values.pis_cofins_withheld, 1),
            Field("Valor Líquido da NFS-e", values.net_value, 3),
        ],
    ]
    return _rows(ctx, "VALOR TOTAL DA NFS-E", rows)


def render_aggregate_taxes(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    values = data.values
    rows = [[
        Field("Federais", values.total_taxes_federal, 0),
        Field("Estaduais", values.total_taxes_state, 1),
        Field("Municipais", values.total_taxes_municipal, 2),
    ]]
    return _rows(ctx, "TOTAIS APROXIMADOS DOS TRIBUTOS", rows)


def render_notes(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    canvas = ctx.canvas
    width = ctx.grid.right - ctx.grid.left
    ctx = ctx.ensure_space(SECTION_GAP + TITLE_LINE_HEIGHT + VALUE_LINE_HEIGHT)
    ctx = _separator(ctx)
    canvas.cell(ctx.grid.left, ctx.y, width, TITLE_LINE_HEIGHT,
                "INFORMAÇÕES COMPLEMENTARES", TITLE)
    ctx = ctx.advance(TITLE_LINE_HEIGHT)
    # Line by line so that long notes continue on the next page
    for line in canvas.split_lines(data.service.notes or FALLBACK, width, VALUE):
        ctx = ctx.ensure_space(VALUE_LINE_HEIGHT)
        canvas.cell(ctx.grid.left, ctx.y, width, VALUE_LINE_HEIGHT, line, VALUE)
        ctx = ctx.advance(VALUE_LINE_HEIGHT)
    return ctx.advance(SECTION_GAP)


def render_border(ctx: LayoutContext, data: DocumentData) -> LayoutContext:
    """Register the page frame; it is drawn on every page when the PDF is finished."""
    canvas = ctx.canvas
    x, y, w, h = ctx.grid.frame_rect

    def draw_frame(page_number: int, page_count: int) -> None:
        canvas.rect(x, y, w, h)

    canvas.add_page_decoration(draw_frame)
    return ctx
