"""Utilidades para la manipulación XML."""

from lxml import etree


def read_cdc(xml: str) -> str | None:
    """Lee el CDC (atributo Id del nodo DE) de un XML rDE.

    Args:
        xml: XML firmado o sin firmar.

    Returns:
        El CDC, o None si el XML no tiene nodo DE.
    """
    root = etree.fromstring(xml.encode("utf-8"))
    node = next(root.iter("{*}DE"), None)
    if node is None:
        return None
    return node.get("Id")
