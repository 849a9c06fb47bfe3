import xml.etree.ElementTree as ET
from xml.dom import minidom
from typing import Mapping


def prettify_xml(elem):
    """Return a pretty-printed XML string for an Element."""
    rough_string = ET.tostring(elem, 'utf-8')
    reparsed = minidom.parseString(rough_string)
    # Return the XML declaration and the pretty-printed content
    return reparsed.toprettyxml(indent="    ")


def create_return_table_xml(table: Mapping[int, float], name: str = "historical") -> str:
    """
    Converts an in-memory (calendar year -> annual return) table into the XML
    layout read by utils.xml_loader.parse_return_table_xml. Years are written
    in ascending order.
    """
    root = ET.Element('returns', name=name)

    for year in sorted(table):
        ET.SubElement(root, 'year', value=str(int(year))).text = repr(float(table[year]))

    return prettify_xml(root)


def create_annotation_xml(annotations: Mapping[int, str]) -> str:
    """Same layout for (calendar year -> reason) annotations."""
    root = ET.Element('annotations')

    for year in sorted(annotations):
        ET.SubElement(root, 'year', value=str(int(year))).text = annotations[year]

    return prettify_xml(root)
