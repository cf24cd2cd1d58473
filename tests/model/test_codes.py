import logging

import pytest

from danfse.errors import UnmappedCode
from danfse.model.codes import (
    CODE_TABLES,
    FALLBACK,
    IMMUNITY_TYPE_DESCRIPTIONS,
    ISSQN_WITHHOLDING_DESCRIPTIONS,
    PIS_COFINS_WITHHOLDING_DESCRIPTIONS,
    SIMPLES_NACIONAL_DESCRIPTIONS,
    SIMPLES_REGIME_DESCRIPTIONS,
    SPECIAL_REGIME_DESCRIPTIONS,
    SUSPENSION_TYPE_DESCRIPTIONS,
    TAX_INCIDENCE_DESCRIPTIONS,
    lookup,
    normalize_code,
    resolve,
)

EXPECTED_TABLES = {
    "tax_incidence": TAX_INCIDENCE_DESCRIPTIONS,
    "immunity_type": IMMUNITY_TYPE_DESCRIPTIONS,
    "suspension_type": SUSPENSION_TYPE_DESCRIPTIONS,
    "issqn_withholding": ISSQN_WITHHOLDING_DESCRIPTIONS,
    "pis_cofins_withholding": PIS_COFINS_WITHHOLDING_DESCRIPTIONS,
    "special_regime": SPECIAL_REGIME_DESCRIPTIONS,
    "simples_nacional": SIMPLES_NACIONAL_DESCRIPTIONS,
    "simples_regime": SIMPLES_REGIME_DESCRIPTIONS,
}

ALL_ENTRIES = [
    (table, code, text)
    for table, descriptions in EXPECTED_TABLES.items()
    for code, text in descriptions.items()
]


def test_code_tables_registry():
    assert CODE_TABLES == EXPECTED_TABLES


@pytest.mark.parametrize("table, code, text", ALL_ENTRIES)
def test_every_entry_resolves(table, code, text):
    assert resolve(table, code) == text
    assert resolve(table, int(code)) == text
    assert lookup(table, code) == text


@pytest.mark.parametrize("table", sorted(EXPECTED_TABLES))
def test_unmapped_code_falls_back(table):
    assert resolve(table, "99") == FALLBACK
    with pytest.raises(UnmappedCode) as excinfo:
        lookup(table, "99")
    assert excinfo.value.table == table
    assert excinfo.value.code == "99"


def test_known_descriptions():
    assert resolve("issqn_withholding", "2") == "Retido pelo Tomador"
    assert resolve("pis_cofins_withholding", "3") == "PIS Retido/COFINS Não Retido"
    assert resolve("special_regime", "0") == "Nenhum"
    assert resolve("simples_nacional", "2") == "Optante - Microempreendedor Individual (MEI)"


@pytest.mark.parametrize(
    "code, expected",
    [
        ("1", "1"),
        ("01", "1"),
        (" 3 ", "3"),
        (2, "2"),
        ("0", "0"),
        ("00", "0"),
        ("1a", ""),
        ("-1", ""),
        ("", ""),
        (None, ""),
        (True, ""),
    ],
)
def test_normalize_code(code, expected):
    assert normalize_code(code) == expected


def test_leading_zero_matches():
    assert resolve("tax_incidence", "01") == "Operação Tributável"


def test_non_numeric_codes_fall_back():
    assert resolve("tax_incidence", "abc") == FALLBACK
    assert resolve("tax_incidence", None) == FALLBACK
    assert resolve("tax_incidence", "") == FALLBACK


@pytest.mark.parametrize("code", ["²", "١", "１"])
def test_non_ascii_digits_fall_back(code):
    assert normalize_code(code) == ""
    assert resolve("tax_incidence", code) == FALLBACK


def test_unknown_table_raises():
    with pytest.raises(KeyError):
        resolve("no_such_table", "1")


def test_unmapped_code_is_logged_at_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="danfse.model.codes"):
        resolve("suspension_type", "9")
    assert any("not mapped" in record.getMessage() for record in caplog.records)
