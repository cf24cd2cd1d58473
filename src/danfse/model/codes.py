"""Code tables of the national NFS-e layout.

Each table maps the small integer codes found in the XML to the Portuguese
text printed on the DANFSe.
"""

import logging
import re
from typing import Dict

from danfse.errors import UnmappedCode

logger = logging.getLogger(__name__)

FALLBACK = "-"

_ASCII_DIGITS = re.compile(r"[0-9]+")

# tribMun/tribISSQN
TAX_INCIDENCE_DESCRIPTIONS = {
    "1": "Operação Tributável",
    "2": "Imunidade",
    "3": "Exportação de Serviço",
    "4": "Não Incidência",
}

# tribMun/tpImunidade
IMMUNITY_TYPE_DESCRIPTIONS = {
    "0": "Imunidade (tipo não informado na nota de origem)",
    "1": "Patrimônio, renda ou serviços, uns dos outros (CF88, Art 150, VI, a)",
    "2": "Templos de qualquer culto (CF88, Art 150, VI, b)",
    "3": "Patrimônio, renda ou serviços dos partidos políticos, inclusive suas "
         "fundações, das entidades sindicais dos trabalhadores, das instituições "
         "de educação e de assistência social, sem fins lucrativos, atendidos os "
         "requisitos da lei (CF88, Art 150, VI, c)",
    "4": "Livros, jornais, periódicos e o papel destinado a sua impressão "
         "(CF88, Art 150, VI, d)",
    "5": "Fonogramas e videofonogramas musicais produzidos no Brasil contendo "
         "obras musicais ou literomusicais de autores brasileiros e/ou obras em "
         "geral interpretadas por artistas brasileiros bem como os suportes "
         "materiais ou arquivos digitais que os contenham, salvo na etapa de "
         "replicação industrial de mídias ópticas de leitura a laser "
         "(CF88, Art 150, VI, e)",
}

# tribMun/exigSusp/tpSusp
SUSPENSION_TYPE_DESCRIPTIONS = {
    "1": "Exigibilidade Suspensa por Decisão Judicial",
    "2": "Exigibilidade Suspensa por Processo Administrativo",
}

# tribMun/tpRetISSQN
ISSQN_WITHHOLDING_DESCRIPTIONS = {
    "1": "Não Retido",
    "2": "Retido pelo Tomador",
    "3": "Retido pelo Intermediário",
}

# tribFed/piscofins/tpRetPisCofins
PIS_COFINS_WITHHOLDING_DESCRIPTIONS = {
    "1": "PIS/COFINS Retidos",
    "2": "PIS/COFINS Não Retidos",
    "3": "PIS Retido/COFINS Não Retido",
    "4": "PIS Não Retido/COFINS Retido",
}

# prest/regTrib/regEspTrib
SPECIAL_REGIME_DESCRIPTIONS = {
    "0": "Nenhum",
    "1": "Ato Cooperado (Cooperativa)",
    "2": "Estimativa",
    "3": "Microempresa Municipal",
    "4": "Notário ou Registrador",
    "5": "Profissional Autônomo",
    "6": "Sociedade de Profissionais",
}

# prest/regTrib/opSimpNac
SIMPLES_NACIONAL_DESCRIPTIONS = {
    "1": "Não Optante",
    "2": "Optante - Microempreendedor Individual (MEI)",
    "3": "Optante - Microempresa ou Empresa de Pequeno Porte (ME/EPP)",
}

# prest/regTrib/regApTribSN
SIMPLES_REGIME_DESCRIPTIONS = {
    "1": "Regime de apuração dos tributos federais e municipal pelo Simples Nacional",
    "2": "Regime de apuração dos tributos federais pelo SN e o ISSQN pela NFS-e "
         "conforme respectiva legislação municipal do tributo",
    "3": "Regime de apuração dos tributos federais e municipal pela NFS-e "
         "conforme respectivas legislações federal e municipal de cada tributo",
}

CODE_TABLES: Dict[str, Dict[str, str]] = {
    "tax_incidence": TAX_INCIDENCE_DESCRIPTIONS,
    "immunity_type": IMMUNITY_TYPE_DESCRIPTIONS,
    "suspension_type": SUSPENSION_TYPE_DESCRIPTIONS,
    "issqn_withholding": ISSQN_WITHHOLDING_DESCRIPTIONS,
    "pis_cofins_withholding": PIS_COFINS_WITHHOLDING_DESCRIPTIONS,
    "special_regime": SPECIAL_REGIME_DESCRIPTIONS,
    "simples_nacional": SIMPLES_NACIONAL_DESCRIPTIONS,
    "simples_regime": SIMPLES_REGIME_DESCRIPTIONS,
}


def normalize_code(code: object) -> str:
    """Return the canonical key for a numeric-shaped code, or ``""``.

    ``" 01 "`` and ``1`` both become ``"1"``; anything that is not made of
    digits only becomes ``""``.
    """
    if code is None or isinstance(code, bool):
        return ""
    text = str(code).strip()
    if not _ASCII_DIGITS.fullmatch(text):
        return ""
    return str(int(text))


def lookup(table: str, code: object) -> str:
    """Strict lookup of ``code`` in ``table``.

    Raises:
        KeyError: If ``table`` is not a known table name.
        UnmappedCode: If the code is not numeric or has no entry.
    """
    descriptions = CODE_TABLES[table]
    key = normalize_code(code)
    if key not in descriptions:
        raise UnmappedCode(table, code)
    return descriptions[key]


def resolve(table: str, code: object) -> str:
    """Get the description of ``code`` in ``table``, or the fallback marker."""
    try:
        return lookup(table, code)
    except UnmappedCode as e:
        if code not in (None, ""):
            logger.debug("%s", e)
        return FALLBACK
