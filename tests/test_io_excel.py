"""Tests I/O tableurs et chargement du catalogue."""

from pathlib import Path

import pandas as pd
import pytest

from menuimport.config import Config
from menuimport.io_excel import ExcelFileError, catalog_from_df, load_catalog, load_sheet, save_xlsx
from menuimport.matching.schema import CatalogEntry


def test_load_sheet_xlsx_preserves_text(tmp_path: Path) -> None:
    path = tmp_path / "catalog.xlsx"
    pd.DataFrame({"menu_code": ["007", "P011"], "name_en": ["Bento", "Udon"]}).to_excel(
        path, index=False, engine="openpyxl"
    )
    df = load_sheet(path)
    assert df["menu_code"].tolist() == ["007", "P011"]


@pytest.mark.parametrize("sep", [",", ";", "\t"])
def test_load_sheet_csv_delimiter(tmp_path: Path, sep: str) -> None:
    path = tmp_path / "catalog.csv"
    path.write_text(sep.join(["menu_code", "name_en"]) + "\n" + sep.join(["P011", "Ten Zaru Udon"]) + "\n", encoding="utf-8")
    df = load_sheet(path)
    assert list(df.columns) == ["menu_code", "name_en"]
    assert df.iloc[0]["name_en"] == "Ten Zaru Udon"


def test_load_sheet_csv_latin1(tmp_path: Path) -> None:
    path = tmp_path / "catalog.csv"
    path.write_bytes("menu_code;name_en\nD001;Crème brûlée\n".encode("latin-1"))
    df = load_sheet(path)
    assert df.iloc[0]["name_en"] == "Crème brûlée"


def test_catalog_from_df() -> None:
    df = pd.DataFrame(
        {
            "menu_code": ["P011", "", "P012: old label", None],
            "name_en": ["Ten Zaru Udon", "Orphan", "Kake Udon", "Ghost"],
            "category_code": ["NOODLE", "X", "", "Y"],
        }
    )
    entries = catalog_from_df(df, Config())
    assert entries == [
        CatalogEntry("P011", "Ten Zaru Udon", "NOODLE"),
        CatalogEntry("P012", "Kake Udon", None),
    ]


def test_catalog_without_category_column() -> None:
    df = pd.DataFrame({"menu_code": ["P011"], "name_en": ["Udon"]})
    assert catalog_from_df(df, Config()) == [CatalogEntry("P011", "Udon", None)]


def test_catalog_missing_column() -> None:
    df = pd.DataFrame({"code": ["P011"], "name_en": ["Udon"]})
    with pytest.raises(ExcelFileError, match="menu_code"):
        catalog_from_df(df, Config())


def test_load_catalog_custom_columns(tmp_path: Path) -> None:
    path = tmp_path / "menus.xlsx"
    pd.DataFrame({"Code": ["A1", "A2"], "Name": ["Miso Soup", "Gyoza"]}).to_excel(
        path, sheet_name="Menus", index=False, engine="openpyxl"
    )
    config = Config(catalog_file=str(path), catalog_sheet="Menus", code_column="Code", name_column="Name")
    entries = load_catalog(config)
    assert [e.code for e in entries] == ["A1", "A2"]
    assert entries[1].display_name == "Gyoza"


def test_load_catalog_requires_file() -> None:
    with pytest.raises(ExcelFileError, match="catalog_file"):
        load_catalog(Config())


def test_save_xlsx_truncates_sheet_names(tmp_path: Path) -> None:
    path = tmp_path / "out.xlsx"
    long_name = "A" * 40
    save_xlsx(path, {"REPORT": pd.DataFrame({"Key": ["k"], "Value": ["v"]}), long_name: pd.DataFrame({"x": [1]})})
    sheets = pd.ExcelFile(path, engine="openpyxl").sheet_names
    assert sheets == ["REPORT", "A" * 31]
