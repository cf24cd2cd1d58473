from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field

from danfse.model.document import QR_URL_TEMPLATE


class MunicipalitySettings(BaseModel):
    '''Display data of the issuing municipality shown in the header.'''
    department: str = Field(default="", description="Department name, e.g. 'Secretaria Municipal da Fazenda'.")
    phone: str = Field(default="", description="Contact phone as it should be printed.")
    email: str = Field(default="", description="Contact e-mail.")
    image: Optional[Path] = Field(default=None, description="Path to the municipality coat of arms image.")


class PayerCitySettings(BaseModel):
    '''Payer city name and state, which the XML only carries as an IBGE code.'''
    name: str = Field(description="City name, e.g. 'Sapiranga'.")
    uf: str = Field(default="", description="Two letter state code, e.g. 'RS'.")


class RenderSettings(BaseModel):
    '''Settings for one DANFSe render.'''
    title: str = Field(default="DANFSe", description="PDF document title.")
    logo_path: Optional[Path] = Field(default=None, description="Path to the NFS-e logo printed in the header.")
    qr_url_template: str = Field(default=QR_URL_TEMPLATE, description="Public lookup URL; '{access_key}' is replaced by the access key.")
    municipality: Optional[MunicipalitySettings] = None
    payer_city: Optional[PayerCitySettings] = None

    class Config:
        extra = "allow"
