from decimal import Decimal

import pytest

from danfse.config.models import MunicipalitySettings, PayerCitySettings
from danfse.errors import ParseError
from danfse.extract import extract, extract_file
from danfse.extract.nfse import (
    combined_federal_withholding,
    combined_pis_cofins_withholding,
    resolve_payer_municipality,
)
from tests.utils.samples import minimal_nfse

D = Decimal


class TestSampleDocument:
    def test_identification(self, sample_document):
        ident = sample_document.identification
        assert ident.access_key == "42045072212345678000195000000000000124030000000012"
        assert ident.nfse_number == "12"
        assert ident.dfse_number == "123456"
        assert ident.competence == "01/03/2024"
        assert ident.processed_at == "15/03/2024 13:45:02"
        assert ident.dps_number == "12"
        assert ident.dps_series == "1"
        assert ident.dps_issued_at == "15/03/2024 10:30:00"
        assert ident.issuing_locality == "Criciúma"
        assert ident.incidence_locality == "Criciúma"

    def test_issuer(self, sample_document):
        issuer = sample_document.issuer
        assert issuer.tax_id == "12.345.678/0001-95"
        assert issuer.municipal_registration == "98765"
        assert issuer.name == "ACME Tecnologia LTDA"
        assert issuer.phone == "(48) 3431-0074"
        assert issuer.email == "contato@acme.com.br"
        assert issuer.address.one_line() == "Rua Henrique Lage, 100, Sala 2, Centro"
        assert issuer.address.postal_code == "88801-010"
        assert issuer.municipality == "Criciúma - SC"
        assert issuer.simples_nacional == "Optante - Microempresa ou Empresa de Pequeno Porte (ME/EPP)"
        assert issuer.simples_regime.startswith("Regime de apuração dos tributos federais e municipal pelo Simples")

    def test_payer(self, sample_document):
        payer = sample_document.payer
        assert payer.tax_id == "123.456.789-01"
        assert payer.name == "Maria da Silva"
        assert payer.phone == "(51) 99999-8888"
        # street fields directly under toma/end, city code under end/endNac
        assert payer.address.one_line() == "Avenida João Corrêa, 55, Centro"
        assert payer.address.postal_code == "93800-000"
        assert sample_document.payer_municipality_code == "4319901"
        # rendering locality equals the issuing one
        assert payer.municipality == "Criciúma"

    def test_service(self, sample_document):
        service = sample_document.service
        assert service.national_code == "01.02.01"
        assert service.classification().startswith("01.02.01 - Elaboração de programas")
        assert service.municipal_code == "001"
        assert service.municipal_description == "Desenvolvimento de software"
        assert service.description == "Desenvolvimento de sistema de gestão sob encomenda"
        assert service.nbs_code == "115022000"
        assert service.notes == "Pedido 4711. Pagamento via boleto bancário."

    def test_taxation(self, sample_document):
        tax = sample_document.taxation
        assert tax.tax_incidence == "Operação Tributável"
        assert tax.immunity_type == "-"
        assert tax.suspension_type == "-"
        assert tax.issqn_withholding == "Não Retido"
        assert tax.pis_cofins_withholding == "PIS/COFINS Não Retidos"
        assert tax.special_regime == "Nenhum"
        assert tax.applied_rate == "2,00 %"

    def test_values(self, sample_document):
        values = sample_document.values
        assert values.service_value == "R$ 1.000,00"
        assert values.issqn_base == "R$ 1.000,00"
        assert values.issqn_amount == "R$ 20,00"
        assert values.issqn_withheld == "-"
        assert values.irrf == "R$ 15,00"
        assert values.cp == "R$ 10,00"
        assert values.csll == "R$ 10,00"
        assert values.pis == "R$ 6,50"
        assert values.cofins == "R$ 30,00"
        assert values.federal_withheld == "R$ 35,00"
        # code 2: nothing withheld, but the components exist
        assert values.pis_cofins_withheld == "R$ 0,00"
        assert values.total_federal == "R$ 71,50"
        assert values.total_withheld == "R$ 35,00"
        assert values.net_value == "R$ 965,00"
        assert values.unconditional_discount == "-"
        assert values.deductions == "-"

    def test_aggregate_taxes_from_percentages(self, sample_document):
        values = sample_document.values
        assert values.total_taxes_federal == "13,45 %"
        assert values.total_taxes_state == "0,00 %"
        assert values.total_taxes_municipal == "2,00 %"

    def test_authority_and_qr(self, sample_document):
        assert sample_document.authority.name == "Prefeitura Municipal de Criciúma"
        assert sample_document.qr_url == (
            "https://www.nfse.gov.br/ConsultaPublica?tpc=1&chave="
            "42045072212345678000195000000000000124030000000012"
        )

    def test_document_is_immutable(self, sample_document):
        with pytest.raises(Exception):
            sample_document.identification.nfse_number = "13"


def test_extract_accepts_text(sample_xml):
    data = extract(sample_xml.decode("utf-8"))
    assert data.identification.nfse_number == "12"


def test_extract_file(sample_xml_path):
    data = extract_file(sample_xml_path)
    assert data.issuer.tax_id == "12.345.678/0001-95"


def test_extract_file_missing(tmp_path):
    with pytest.raises(ParseError):
        extract_file(tmp_path / "missing.xml")


def test_access_key_without_prefix():
    data = extract(minimal_nfse(id_attr='Id="4204608"'))
    assert data.identification.access_key == "4204608"


def test_root_may_be_inf_nfse():
    xml = (
        '<infNFSe xmlns="http://www.sped.fazenda.gov.br/nfse" Id="NFS99">'
        '<nNFSe>3</nNFSe><emit><CPF>12345678901</CPF></emit></infNFSe>'
    )
    data = extract(xml)
    assert data.identification.access_key == "99"
    assert data.issuer.tax_id == "123.456.789-01"
    assert data.payer.tax_id == ""


class TestParseErrors:
    def test_malformed(self):
        with pytest.raises(ParseError) as excinfo:
            extract("<NFSe><infNFSe>")
        assert "malformed" in excinfo.value.reason

    def test_wrong_namespace(self):
        with pytest.raises(ParseError):
            extract('<NFSe xmlns="urn:other"><infNFSe Id="NFS1"><nNFSe>1</nNFSe></infNFSe></NFSe>')

    def test_no_namespace(self):
        with pytest.raises(ParseError):
            extract('<NFSe><infNFSe Id="NFS1"><nNFSe>1</nNFSe></infNFSe></NFSe>')

    def test_missing_inf_nfse(self):
        with pytest.raises(ParseError) as excinfo:
            extract('<NFSe xmlns="http://www.sped.fazenda.gov.br/nfse"><other/></NFSe>')
        assert excinfo.value.field == "infNFSe"

    def test_missing_id(self):
        with pytest.raises(ParseError) as excinfo:
            extract(minimal_nfse(id_attr=""))
        assert excinfo.value.field == "infNFSe/@Id"

    def test_missing_number(self):
        with pytest.raises(ParseError) as excinfo:
            extract(minimal_nfse(n_nfse=""))
        assert excinfo.value.field == "nNFSe"

    def test_no_tax_id_for_either_party(self):
        with pytest.raises(ParseError):
            extract(minimal_nfse(emit="<emit><xNome>Sem documento</xNome></emit>"))

    def test_payer_tax_id_is_enough(self):
        data = extract(minimal_nfse(
            emit="<emit><xNome>Sem documento</xNome></emit>",
            dps_body="<toma><NIF>AB1234</NIF><xNome>Foreign Ltd</xNome></toma>",
        ))
        assert data.issuer.tax_id == ""
        assert data.payer.tax_id == "AB1234"


def test_minimal_document_degrades_gracefully():
    data = extract(minimal_nfse())
    assert data.identification.competence == ""
    assert data.payer.name == ""
    assert data.payer.phone == "-"
    assert data.taxation.tax_incidence == "-"
    assert data.values.service_value == "-"
    assert data.values.federal_withheld == "-"
    assert data.values.pis_cofins_withheld == "-"
    assert data.values.total_federal == "-"
    assert data.values.total_taxes_federal == "-"
    assert data.taxation.applied_rate == "-"


def test_pis_retained_only():
    data = extract(minimal_nfse(dps_body="""
        <valores><trib><tribFed>
          <piscofins><vPis>10.00</vPis><vCofins>5.00</vCofins><tpRetPisCofins>3</tpRetPisCofins></piscofins>
        </tribFed></trib></valores>"""))
    assert data.values.pis_cofins_withheld == "R$ 10,00"
    assert data.taxation.pis_cofins_withholding == "PIS Retido/COFINS Não Retido"
    assert data.values.total_federal == "R$ 15,00"
    # IRRF, CP and CSLL absent
    assert data.values.federal_withheld == "-"


def test_unknown_code_renders_fallback():
    data = extract(minimal_nfse(dps_body="""
        <valores><trib><tribMun><tribISSQN>9</tribISSQN></tribMun></trib></valores>"""))
    assert data.taxation.tax_incidence == "-"


def test_non_ascii_digit_code_renders_fallback():
    data = extract(minimal_nfse(dps_body="""
        <valores><trib><tribMun><tribISSQN>²</tribISSQN></tribMun></trib></valores>"""))
    assert data.taxation.tax_incidence == "-"


def test_huge_service_value_does_not_fail():
    data = extract(minimal_nfse(dps_body="""
        <valores><vServPrest><vServ>1E+30</vServ></vServPrest></valores>"""))
    assert data.values.service_value == "R$ 1" + ".000" * 10 + ",00"


def test_issqn_withheld_by_payer():
    data = extract(minimal_nfse(
        inf_body="<valores><vISSQN>50.00</vISSQN></valores>",
        dps_body="""<valores><trib><tribMun>
            <tribISSQN>1</tribISSQN><tpRetISSQN>2</tpRetISSQN>
        </tribMun></trib></valores>""",
    ))
    assert data.values.issqn_amount == "R$ 50,00"
    assert data.values.issqn_withheld == "R$ 50,00"
    assert data.taxation.issqn_withholding == "Retido pelo Tomador"


def test_suspension_and_immunity():
    data = extract(minimal_nfse(dps_body="""
        <valores><trib><tribMun>
          <tribISSQN>2</tribISSQN>
          <tpImunidade>2</tpImunidade>
          <exigSusp><tpSusp>1</tpSusp><nProcesso>0001234</nProcesso></exigSusp>
          <BM><nBM>42</nBM></BM>
        </tribMun></trib></valores>"""))
    tax = data.taxation
    assert tax.tax_incidence == "Imunidade"
    assert tax.immunity_type == "Templos de qualquer culto (CF88, Art 150, VI, b)"
    assert tax.suspension_type == "Exigibilidade Suspensa por Decisão Judicial"
    assert tax.suspension_process == "0001234"
    assert tax.benefit_number == "42"


def test_aggregate_taxes_prefer_amounts():
    data = extract(minimal_nfse(dps_body="""
        <valores><trib><totTrib>
          <vTotTrib><vTotTribFed>134.50</vTotTribFed><vTotTribEst>0.00</vTotTribEst><vTotTribMun>20.00</vTotTribMun></vTotTrib>
        </totTrib></trib></valores>"""))
    assert data.values.total_taxes_federal == "R$ 134,50"
    assert data.values.total_taxes_state == "R$ 0,00"
    assert data.values.total_taxes_municipal == "R$ 20,00"


def test_discounts_and_deductions():
    data = extract(minimal_nfse(dps_body="""
        <valores>
          <vServPrest><vServ>500</vServ></vServPrest>
          <vDescCondIncond><vDescIncond>10</vDescIncond><vDescCond>5.5</vDescCond></vDescCondIncond>
          <vDedRed><vDR>100</vDR></vDedRed>
        </valores>"""))
    values = data.values
    assert values.service_value == "R$ 500,00"
    assert values.unconditional_discount == "R$ 10,00"
    assert values.conditional_discount == "R$ 5,50"
    assert values.deductions == "R$ 100,00"


def test_payer_city_override(sample_xml):
    data = extract(sample_xml, payer_city=PayerCitySettings(name="Sapiranga", uf="RS"))
    assert data.payer.municipality == "Sapiranga - RS"


def test_municipality_settings_fill_authority(sample_xml, tmp_path):
    crest = tmp_path / "brasao.png"
    data = extract(sample_xml, municipality=MunicipalitySettings(
        department="Secretaria Municipal da Fazenda",
        phone="(48)3431-0074",
        email="tributos@criciuma.sc.gov.br",
        image=crest,
    ))
    authority = data.authority
    assert authority.department == "Secretaria Municipal da Fazenda"
    assert authority.phone == "(48)3431-0074"
    assert authority.email == "tributos@criciuma.sc.gov.br"
    assert authority.crest_path == crest


def test_custom_qr_template(sample_xml):
    data = extract(sample_xml, qr_url_template="https://example.org/nfse/{access_key}")
    assert data.qr_url.startswith("https://example.org/nfse/4204")


class TestCombinedWithholding:
    def test_federal_sums_present_values(self):
        assert combined_federal_withholding(D("1"), D("2"), D("3")) == D("6")
        assert combined_federal_withholding(D("1.50"), None, None) == D("1.50")
        assert combined_federal_withholding(None, None, None) is None

    @pytest.mark.parametrize(
        "code, expected",
        [
            ("1", D("15.00")),
            ("2", D("0")),
            ("3", D("10.00")),
            ("4", D("5.00")),
            ("01", D("15.00")),
            ("9", D("0")),
            (None, D("0")),
        ],
    )
    def test_pis_cofins_by_code(self, code, expected):
        assert combined_pis_cofins_withholding(code, D("10.00"), D("5.00")) == expected

    def test_pis_cofins_missing_components(self):
        assert combined_pis_cofins_withholding("1", None, None) is None
        assert combined_pis_cofins_withholding("1", None, D("5")) == D("5")


class TestPayerMunicipality:
    def test_override_with_state(self):
        assert resolve_payer_municipality("A", "B", PayerCitySettings(name="C", uf="RS")) == "C - RS"

    def test_override_without_state(self):
        assert resolve_payer_municipality("A", "B", PayerCitySettings(name="C")) == "C"

    def test_rendering_locality(self):
        assert resolve_payer_municipality("Criciúma", "Sapiranga") == "Sapiranga"

    def test_same_or_blank_rendering_locality(self):
        assert resolve_payer_municipality("Criciúma", "Criciúma") == "Criciúma"
        assert resolve_payer_municipality("Criciúma", "") == "Criciúma"
