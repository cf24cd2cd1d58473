"""Extraction of the national NFS-e XML into :class:`DocumentData`.

Only a handful of fields are required (access key, NFS-e number and a tax id
of the issuer or the payer). Everything else degrades to an empty string or
the fallback marker so that an incomplete record still renders.
"""

import logging
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, Union

import lxml.etree as ET

from danfse.errors import ParseError
from danfse.model.codes import FALLBACK, normalize_code, resolve
from danfse.model.document import (
    QR_URL_TEMPLATE,
    Address,
    Authority,
    DocumentData,
    Identification,
    Issuer,
    Payer,
    Service,
    Taxation,
    Values,
)
from danfse.config.models import MunicipalitySettings, PayerCitySettings
from danfse.util.formatters import (
    format_access_key,
    format_date,
    format_datetime,
    format_money,
    format_percent,
    format_phone,
    format_postal_code,
    format_service_code,
    format_tax_id,
    to_decimal,
)

logger = logging.getLogger(__name__)

NFSE_NS = "http://www.sped.fazenda.gov.br/nfse"
NS = {"n": NFSE_NS}

# tpRetPisCofins codes under which each component is withheld
PIS_RETAINED_CODES = {"1", "3"}
COFINS_RETAINED_CODES = {"1", "4"}
# tpRetISSQN codes meaning the ISSQN is withheld (by the payer or the intermediary)
ISSQN_RETAINED_CODES = {"2", "3"}


def _path(path: str) -> str:
    """'emit/xNome' -> 'n:emit/n:xNome'."""
    return "/".join(f"n:{part}" for part in path.split("/"))


def _text(node: Optional[ET._Element], path: str) -> str:
    if node is None:
        return ""
    el = node.find(_path(path), NS)
    if el is None or el.text is None:
        return ""
    return el.text.strip()


def _first_text(node: Optional[ET._Element], *paths: str) -> str:
    for path in paths:
        value = _text(node, path)
        if value:
            return value
    return ""


def _money(node: Optional[ET._Element], *paths: str) -> str:
    value = _first_text(node, *paths)
    if not value:
        return FALLBACK
    return format_money(value)


def _sum_present(values: Iterable[Optional[Decimal]]) -> Optional[Decimal]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present, Decimal("0"))


def combined_federal_withholding(irrf: Optional[Decimal], cp: Optional[Decimal],
                                 csll: Optional[Decimal]) -> Optional[Decimal]:
    """IRRF + CP + CSLL withheld, regardless of any withholding code.

    Returns None when none of the three amounts is present.
    """
    return _sum_present([irrf, cp, csll])


def combined_pis_cofins_withholding(code: object, pis: Optional[Decimal],
                                    cofins: Optional[Decimal]) -> Optional[Decimal]:
    """PIS/COFINS withheld according to ``tpRetPisCofins``.

    Code 1 withholds both, 3 only PIS, 4 only COFINS; 2 and unknown codes
    withhold nothing. Returns None when neither amount is present.
    """
    if pis is None and cofins is None:
        return None
    key = normalize_code(code)
    total = Decimal("0")
    if key in PIS_RETAINED_CODES and pis is not None:
        total += pis
    if key in COFINS_RETAINED_CODES and cofins is not None:
        total += cofins
    return total


def resolve_payer_municipality(issuing_locality: str, rendering_locality: str,
                               payer_city: Optional[PayerCitySettings] = None) -> str:
    """Name printed as the payer municipality.

    The XML only has the IBGE code of the payer city. Without an externally
    resolved name the rendering locality is used, or the issuing locality when
    the rendering locality is blank or the same place.
    """
    if payer_city is not None and payer_city.name:
        if payer_city.uf:
            return f"{payer_city.name} - {payer_city.uf}"
        return payer_city.name
    if rendering_locality and rendering_locality != issuing_locality:
        return rendering_locality
    return issuing_locality


def _parse_root(xml_text: Union[str, bytes]) -> ET._Element:
    if isinstance(xml_text, str):
        xml_text = xml_text.encode("utf-8")
    parser = ET.XMLParser(remove_blank_text=True, resolve_entities=False, no_network=True)
    try:
        root = ET.fromstring(xml_text, parser)
    except ET.XMLSyntaxError as e:
        raise ParseError(f"malformed XML: {e}") from e
    if root is None:
        raise ParseError("empty document")
    if ET.QName(root).namespace != NFSE_NS:
        raise ParseError(f"root element '{root.tag}' is not in namespace {NFSE_NS}")
    return root


def _find_inf_nfse(root: ET._Element) -> ET._Element:
    if ET.QName(root).localname == "infNFSe":
        return root
    inf = root.find("n:infNFSe", NS)
    if inf is None:
        raise ParseError("element is missing", field="infNFSe")
    return inf


def _tax_id(node: Optional[ET._Element]) -> str:
    cnpj_cpf = _first_text(node, "CNPJ", "CPF")
    if cnpj_cpf:
        return format_tax_id(cnpj_cpf)
    # Foreign payers carry a NIF, printed as is
    return _text(node, "NIF")


def _extract_identification(inf: ET._Element, dps: Optional[ET._Element]) -> Identification:
    raw_id = inf.get("Id")
    if not raw_id or not raw_id.strip():
        raise ParseError("attribute is missing", field="infNFSe/@Id")
    nfse_number = _text(inf, "nNFSe")
    if not nfse_number:
        raise ParseError("element is missing", field="nNFSe")

    return Identification(
        access_key=format_access_key(raw_id),
        nfse_number=nfse_number,
        dfse_number=_text(inf, "nDFSe"),
        competence=format_date(_text(dps, "dCompet")),
        processed_at=format_datetime(_text(inf, "dhProc")),
        dps_number=_text(dps, "nDPS"),
        dps_series=_text(dps, "serie"),
        dps_issued_at=format_datetime(_text(dps, "dhEmi")),
        issuing_locality=_text(inf, "xLocEmi"),
        rendering_locality=_text(inf, "xLocPrestacao"),
        incidence_locality=_text(inf, "xLocIncid"),
    )


def _extract_issuer(inf: ET._Element, dps: Optional[ET._Element],
                    identification: Identification) -> Issuer:
    emit = inf.find("n:emit", NS)
    prest = dps.find("n:prest", NS) if dps is not None else None
    state = _text(emit, "enderNac/UF")
    municipality = identification.issuing_locality
    if municipality and state:
        municipality = f"{municipality} - {state}"

    return Issuer(
        tax_id=_tax_id(emit) or _tax_id(prest),
        municipal_registration=_first_text(emit, "IM") or _text(prest, "IM"),
        name=_first_text(emit, "xNome", "xFant"),
        phone=format_phone(_text(emit, "fone") or _text(prest, "fone")),
        email=_text(emit, "email") or _text(prest, "email"),
        address=Address(
            street=_text(emit, "enderNac/xLgr"),
            number=_text(emit, "enderNac/nro"),
            complement=_text(emit, "enderNac/xCpl"),
            district=_text(emit, "enderNac/xBairro"),
            municipality_code=_text(emit, "enderNac/cMun"),
            state=state,
            postal_code=format_postal_code(_text(emit, "enderNac/CEP")),
        ),
        municipality=municipality,
        simples_nacional=resolve("simples_nacional", _text(prest, "regTrib/opSimpNac")),
        simples_regime=resolve("simples_regime", _text(prest, "regTrib/regApTribSN")),
    )


def _extract_payer(dps: Optional[ET._Element], identification: Identification,
                   payer_city: Optional[PayerCitySettings]) -> Payer:
    toma = dps.find("n:toma", NS) if dps is not None else None

    def address_field(name: str) -> str:
        return _first_text(toma, f"end/endNac/{name}", f"end/{name}")

    return Payer(
        tax_id=_tax_id(toma),
        municipal_registration=_text(toma, "IM"),
        name=_text(toma, "xNome"),
        phone=format_phone(_text(toma, "fone")),
        email=_text(toma, "email"),
        address=Address(
            street=address_field("xLgr"),
            number=address_field("nro"),
            complement=address_field("xCpl"),
            district=address_field("xBairro"),
            municipality_code=address_field("cMun"),
            postal_code=format_postal_code(address_field("CEP")),
        ),
        municipality=resolve_payer_municipality(
            identification.issuing_locality,
            identification.rendering_locality,
            payer_city,
        ),
    )


def _extract_service(inf: ET._Element, dps: Optional[ET._Element]) -> Service:
    return Service(
        national_code=format_service_code(_text(dps, "serv/cServ/cTribNac")),
        national_description=_text(inf, "xTribNac"),
        municipal_code=_text(dps, "serv/cServ/cTribMun"),
        municipal_description=_text(inf, "xTribMun"),
        description=_text(dps, "serv/cServ/xDescServ"),
        nbs_code=_text(dps, "serv/cServ/cNBS"),
        rendering_country=_text(dps, "serv/locPrest/cPaisPrestacao"),
        notes=_first_text(dps, "serv/infoCompl/xInfComp", "infoCompl/xInfComp"),
    )


def _extract_taxation(inf: ET._Element, dps: Optional[ET._Element]) -> Taxation:
    trib_mun = dps.find(_path("valores/trib/tribMun"), NS) if dps is not None else None
    rate = _first_text(inf, "valores/pAliqAplic") or _text(trib_mun, "pAliq")

    return Taxation(
        tax_incidence=resolve("tax_incidence", _text(trib_mun, "tribISSQN")),
        immunity_type=resolve("immunity_type", _text(trib_mun, "tpImunidade")),
        suspension_type=resolve("suspension_type", _text(trib_mun, "exigSusp/tpSusp")),
        suspension_process=_text(trib_mun, "exigSusp/nProcesso"),
        benefit_number=_text(trib_mun, "BM/nBM"),
        issqn_withholding=resolve("issqn_withholding", _text(trib_mun, "tpRetISSQN")),
        pis_cofins_withholding=resolve(
            "pis_cofins_withholding",
            _text(dps, "valores/trib/tribFed/piscofins/tpRetPisCofins"),
        ),
        special_regime=resolve("special_regime", _text(dps, "prest/regTrib/regEspTrib")),
        result_country=_text(trib_mun, "cPaisResult"),
        applied_rate=format_percent(rate) if rate else FALLBACK,
    )


def _aggregate_tax(tot_trib: Optional[ET._Element], suffix: str) -> str:
    amount = _text(tot_trib, f"vTotTrib/vTotTrib{suffix}")
    if amount:
        return format_money(amount)
    rate = _text(tot_trib, f"pTotTrib/pTotTrib{suffix}")
    if rate:
        return format_percent(rate)
    return FALLBACK


def _derived(amount: Optional[Decimal]) -> str:
    return FALLBACK if amount is None else format_money(amount)


def _extract_values(inf: ET._Element, dps: Optional[ET._Element]) -> Values:
    valores = dps.find("n:valores", NS) if dps is not None else None
    trib_fed = valores.find(_path("trib/tribFed"), NS) if valores is not None else None
    tot_trib = valores.find(_path("trib/totTrib"), NS) if valores is not None else None

    irrf = to_decimal(_text(trib_fed, "vRetIRRF"))
    cp = to_decimal(_text(trib_fed, "vRetCP"))
    csll = to_decimal(_text(trib_fed, "vRetCSLL"))
    pis = to_decimal(_text(trib_fed, "piscofins/vPis"))
    cofins = to_decimal(_text(trib_fed, "piscofins/vCofins"))
    pis_cofins_code = _text(trib_fed, "piscofins/tpRetPisCofins")

    issqn_amount = _money(inf, "valores/vISSQN")
    issqn_code = normalize_code(_text(valores, "trib/tribMun/tpRetISSQN"))
    issqn_withheld = issqn_amount if issqn_code in ISSQN_RETAINED_CODES else FALLBACK

    return Values(
        service_value=_money(valores, "vServPrest/vServ"),
        unconditional_discount=_money(valores, "vDescCondIncond/vDescIncond"),
        conditional_discount=_money(valores, "vDescCondIncond/vDescCond"),
        deductions=_money(valores, "vDedRed/vDR"),
        benefit_calculation=_money(inf, "valores/vCalcBM"),
        issqn_base=_money(inf, "valores/vBC"),
        issqn_amount=issqn_amount,
        issqn_withheld=issqn_withheld,
        irrf=_derived(irrf),
        cp=_derived(cp),
        csll=_derived(csll),
        pis=_derived(pis),
        cofins=_derived(cofins),
        total_withheld=_money(inf, "valores/vTotalRet"),
        net_value=_money(inf, "valores/vLiq"),
        total_taxes_federal=_aggregate_tax(tot_trib, "Fed"),
        total_taxes_state=_aggregate_tax(tot_trib, "Est"),
        total_taxes_municipal=_aggregate_tax(tot_trib, "Mun"),
        federal_withheld=_derived(combined_federal_withholding(irrf, cp, csll)),
        pis_cofins_withheld=_derived(combined_pis_cofins_withholding(pis_cofins_code, pis, cofins)),
        total_federal=_derived(_sum_present([irrf, cp, csll, pis, cofins])),
    )


def _build_authority(identification: Identification,
                     municipality: Optional[MunicipalitySettings]) -> Authority:
    name = f"Prefeitura Municipal de {identification.issuing_locality}".strip()
    if municipality is None:
        return Authority(name=name)
    return Authority(
        name=name,
        department=municipality.department,
        phone=municipality.phone,
        email=municipality.email,
        crest_path=municipality.image,
    )


def extract(xml_text: Union[str, bytes],
            municipality: Optional[MunicipalitySettings] = None,
            payer_city: Optional[PayerCitySettings] = None,
            qr_url_template: str = QR_URL_TEMPLATE) -> DocumentData:
    """Extract the DANFSe data from an NFS-e XML document.

    Args:
        xml_text: The XML document.
        municipality: Display data of the issuing municipality for the header.
        payer_city: Externally resolved payer city name and state.
        qr_url_template: Public lookup URL with an ``{access_key}`` placeholder.

    Returns:
        The immutable document record.

    Raises:
        ParseError: If the XML is malformed, not an NFS-e, or misses the
            access key, the NFS-e number or both tax ids.
    """
    root = _parse_root(xml_text)
    inf = _find_inf_nfse(root)
    dps = inf.find(_path("DPS/infDPS"), NS)
    if dps is None:
        logger.warning("NFS-e has no DPS/infDPS block; payer and service data will be empty.")

    identification = _extract_identification(inf, dps)
    issuer = _extract_issuer(inf, dps, identification)
    payer = _extract_payer(dps, identification, payer_city)
    if not issuer.tax_id and not payer.tax_id:
        raise ParseError("neither issuer nor payer has a CNPJ, CPF or NIF", field="emit/toma")

    data = DocumentData(
        identification=identification,
        issuer=issuer,
        payer=payer,
        service=_extract_service(inf, dps),
        taxation=_extract_taxation(inf, dps),
        values=_extract_values(inf, dps),
        authority=_build_authority(identification, municipality),
        qr_url_template=qr_url_template,
    )
    logger.debug("Extracted NFS-e %s (access key %s)",
                 identification.nfse_number, identification.access_key)
    return data


def extract_file(file_path: Union[str, Path], **kwargs) -> DocumentData:
    """Read an NFS-e XML file and extract it; see :func:`extract`."""
    try:
        with open(file_path, "rb") as f:
            content = f.read()
    except OSError as e:
        raise ParseError(f"cannot read {file_path}: {e.strerror or e}") from e
    return extract(content, **kwargs)
