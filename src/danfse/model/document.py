"""Pydantic models for the data printed on a DANFSe.

The models hold display-ready strings: dates, tax ids and amounts are
formatted and coded fields are translated when the record is extracted, so
the layout code only places text.
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict

QR_URL_TEMPLATE = "https://www.nfse.gov.br/ConsultaPublica?tpc=1&chave={access_key}"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Address(FrozenModel):
    street: str = ""
    number: str = ""
    complement: str = ""
    district: str = ""
    municipality_code: str = ""  # IBGE
    state: str = ""
    postal_code: str = ""

    def one_line(self) -> str:
        """Street, number, complement and district joined by commas."""
        parts = [self.street, self.number, self.complement, self.district]
        return ", ".join(p for p in parts if p)


class Party(FrozenModel):
    tax_id: str = ""
    municipal_registration: str = ""
    name: str = ""
    phone: str = "-"
    email: str = ""
    address: Address = Address()
    municipality: str = ""


class Issuer(Party):
    """The service provider (``emit``)."""
    simples_nacional: str = "-"
    simples_regime: str = "-"


class Payer(Party):
    """The service taker (``toma``)."""


class Identification(FrozenModel):
    access_key: str
    nfse_number: str
    dfse_number: str = ""
    competence: str = ""
    processed_at: str = ""
    dps_number: str = ""
    dps_series: str = ""
    dps_issued_at: str = ""
    issuing_locality: str = ""
    rendering_locality: str = ""
    incidence_locality: str = ""


class Service(FrozenModel):
    national_code: str = ""
    national_description: str = ""
    municipal_code: str = ""
    municipal_description: str = ""
    description: str = ""
    nbs_code: str = ""
    rendering_country: str = ""
    notes: str = ""

    def classification(self) -> str:
        """National code and its description as printed in the service block."""
        if self.national_code and self.national_description:
            return f"{self.national_code} - {self.national_description}"
        return self.national_code or self.national_description


class Taxation(FrozenModel):
    tax_incidence: str = "-"
    immunity_type: str = "-"
    suspension_type: str = "-"
    suspension_process: str = ""
    benefit_number: str = ""
    issqn_withholding: str = "-"
    pis_cofins_withholding: str = "-"
    special_regime: str = "-"
    result_country: str = ""
    applied_rate: str = "-"


class Values(FrozenModel):
    service_value: str = "-"
    unconditional_discount: str = "-"
    conditional_discount: str = "-"
    deductions: str = "-"
    benefit_calculation: str = "-"
    issqn_base: str = "-"
    issqn_amount: str = "-"
    issqn_withheld: str = "-"
    irrf: str = "-"
    cp: str = "-"
    csll: str = "-"
    pis: str = "-"
    cofins: str = "-"
    total_withheld: str = "-"
    net_value: str = "-"
    total_taxes_federal: str = "-"
    total_taxes_state: str = "-"
    total_taxes_municipal: str = "-"
    # derived
    federal_withheld: str = "-"
    pis_cofins_withheld: str = "-"
    total_federal: str = "-"


class Authority(FrozenModel):
    """The municipality shown in the header."""
    name: str
    department: str = ""
    phone: str = ""
    email: str = ""
    crest_path: Optional[Path] = None


class DocumentData(FrozenModel):
    identification: Identification
    issuer: Issuer
    payer: Payer
    service: Service = Service()
    taxation: Taxation = Taxation()
    values: Values = Values()
    authority: Authority
    qr_url_template: str = QR_URL_TEMPLATE

    @property
    def qr_url(self) -> str:
        return self.qr_url_template.format(access_key=self.identification.access_key)

    @property
    def payer_municipality_code(self) -> str:
        """IBGE code of the payer city, for resolving its name externally."""
        return self.payer.address.municipality_code
