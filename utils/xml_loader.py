# utils/xml_loader.py
import xml.etree.ElementTree as ET
from typing import Any, Dict, Union, IO
from pathlib import Path

# Sections in default_setup.xml whose children are flattened into the setup dict
SETUP_SECTIONS = ["person", "portfolio", "income", "spending", "simulation"]
INT_FIELDS = ["start_year", "horizon_years", "current_age", "retirement_age", "benefit_start_age"]

XmlSource = Union[str, Path, IO]


def parse_setup_xml(file_path: XmlSource) -> Dict[str, Any]:
    tree = ET.parse(file_path)
    root = tree.getroot()

    setup_dict: Dict[str, Any] = {}

    for child in root:
        if child.tag in SETUP_SECTIONS:
            for sub in child:
                setup_dict[sub.tag] = _normalize(sub.tag, try_cast(sub.text))
        else:
            setup_dict[child.tag] = _normalize(child.tag, try_cast(child.text))

    return setup_dict


def _normalize(tag: str, val: Any) -> Any:
    if val is None or isinstance(val, (str, bool)):
        return val
    if tag in INT_FIELDS:
        return int(val)
    return float(val)


def try_cast(value: str) -> Any:
    """Try to convert string to int or float if possible, else leave as str."""
    if value is None:
        return None
    value = value.strip()
    # Booleans
    if value.lower() in ("true", "false"):
        return value.lower() == "true"

    # Integers (try first)
    try:
        if '.' not in value:
            return int(value)
    except ValueError:
        pass

    # Floats (try second)
    try:
        return float(value)
    except ValueError:
        pass

    return value


def parse_return_table_xml(source: XmlSource) -> Dict[int, float]:
    """
    Load a (calendar year -> annual return) table.

    Expected layout::

        <returns name="historical">
            <year value="2008">-0.37</year>
            <year value="2009">0.265</year>
        </returns>

    Works with a file name or a file-like object (e.g. uploaded content).
    Years need not be contiguous.
    """
    tree = ET.parse(source)
    root = tree.getroot()
    table: Dict[int, float] = {}

    for entry in root.findall("year"):
        year = entry.get("value")
        ret = try_cast(entry.text)
        if year is None or not isinstance(ret, (int, float)) or isinstance(ret, bool):
            raise ValueError(f"Malformed return table entry: year={year!r} return={entry.text!r}")
        table[int(year)] = float(ret)

    return table


def parse_annotation_xml(source: XmlSource) -> Dict[int, str]:
    """Load a (calendar year -> reason) annotation table. Reporting use only."""
    tree = ET.parse(source)
    root = tree.getroot()
    annotations: Dict[int, str] = {}

    for entry in root.findall("year"):
        year = entry.get("value")
        if year is None:
            continue
        annotations[int(year)] = (entry.text or "").strip()

    return annotations


CONFIG_DIR = Path(__file__).parent.parent / "config"

DEFAULT_SETUP = parse_setup_xml(CONFIG_DIR / "default_setup.xml")
