"""Generador del XML del DE (estructura rDE simplificada).

ES: Construye el árbol rDE/DE con lxml respetando el orden de los grupos
    del Manual Técnico (gOpeDE, gTimb, gDatGralOpe, gDtipDE, gTotSub,
    gCamDEAsoc). No pretende validar contra el XSD oficial.
EN: Builds the rDE/DE tree with lxml following the technical manual's
    group order. It does not aim to validate against the official XSD.
"""

from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal

from lxml import etree

from sifen_de.adapters.base import BaseXmlGenerator
from sifen_de.adapters.models import DocumentData, GeneratedXml, IssuerParams
from sifen_de.generators.cdc import (
    EMISSION_TYPE_NORMAL,
    build_cdc,
    security_code,
)
from sifen_de.models.document import (
    NonTaxpayerReceiver,
    SelfBilledSeller,
    TaxpayerReceiver,
)
from sifen_de.models.enums import Currency, DocumentType

SIFEN_NS = "http://ekuatia.set.gov.py/sifen/xsd"
FORMAT_VERSION = "150"

_DOCUMENT_LABELS = {
    DocumentType.FACTURA: "Factura electrónica",
    DocumentType.AUTOFACTURA: "Autofactura electrónica",
    DocumentType.NOTA_CREDITO: "Nota de crédito electrónica",
    DocumentType.NOTA_DEBITO: "Nota de débito electrónica",
    DocumentType.NOTA_REMISION: "Nota de remisión electrónica",
}


def _q(tag: str) -> str:
    """Nombre calificado en el namespace SIFEN."""
    return f"{{{SIFEN_NS}}}{tag}"


def _add(parent: etree._Element, tag: str, text: object) -> etree._Element:
    element = etree.SubElement(parent, _q(tag))
    element.text = str(text)
    return element


def _fmt_amount(amount: Decimal, currency: Currency) -> str:
    if currency is Currency.PYG:
        return f"{amount:.0f}"
    return f"{amount:.2f}"


class DEXmlGenerator(BaseXmlGenerator):
    """Generador de XML de DE basado en lxml.

    ES: El CDC se calcula con el código de seguridad derivado del id del
        DE, por lo que la generación es idempotente.
    EN: The CDC uses a security code derived from the DE id, so
        generation is idempotent.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))

    def generate(self, issuer: IssuerParams, document: DocumentData) -> GeneratedXml:
        security = security_code(document.document_id)
        cdc = build_cdc(
            document_type=document.document_type,
            ruc=issuer.ruc,
            dv=issuer.dv,
            establishment=issuer.establishment,
            point=issuer.point,
            number=issuer.number,
            taxpayer_type=issuer.taxpayer_type,
            issue_date=document.issue_date,
            security=security,
        )

        root = etree.Element(_q("rDE"), nsmap={None: SIFEN_NS})
        _add(root, "dVerFor", FORMAT_VERSION)
        de = etree.SubElement(root, _q("DE"), Id=cdc)
        _add(de, "dDVId", cdc[-1])
        _add(de, "dFecFirma", self._clock().strftime("%Y-%m-%dT%H:%M:%S"))
        _add(de, "dSisFact", "1")

        self._build_operation(de, issuer, security)
        self._build_authorization(de, issuer, document)
        self._build_general_data(de, issuer, document)
        self._build_items(de, document)
        self._build_totals(de, document)
        if document.referenced_cdc:
            assoc = etree.SubElement(de, _q("gCamDEAsoc"))
            _add(assoc, "iTipDocAso", "1")
            _add(assoc, "dCdCDERef", document.referenced_cdc)

        xml = etree.tostring(root, encoding="unicode")
        return GeneratedXml(xml=xml, cdc=cdc)

    # --- Construcción del árbol ---

    def _build_operation(
        self, de: etree._Element, issuer: IssuerParams, security: str
    ) -> None:
        ope = etree.SubElement(de, _q("gOpeDE"))
        _add(ope, "iTipEmi", EMISSION_TYPE_NORMAL)
        _add(ope, "dCodSeg", security)
        _add(ope, "iAmbiente", issuer.environment.code)

    def _build_authorization(
        self, de: etree._Element, issuer: IssuerParams, document: DocumentData
    ) -> None:
        timb = etree.SubElement(de, _q("gTimb"))
        _add(timb, "iTiDE", int(document.document_type))
        _add(timb, "dDesTiDE", _DOCUMENT_LABELS[document.document_type])
        _add(timb, "dNumTim", issuer.authorization)
        _add(timb, "dEst", issuer.establishment)
        _add(timb, "dPunExp", issuer.point)
        _add(timb, "dNumDoc", issuer.number)
        if issuer.authorization_start is not None:
            _add(timb, "dFeIniT", issuer.authorization_start.isoformat())

    def _build_general_data(
        self, de: etree._Element, issuer: IssuerParams, document: DocumentData
    ) -> None:
        gral = etree.SubElement(de, _q("gDatGralOpe"))
        _add(gral, "dFeEmiDE", document.issue_date.isoformat())
        _add(gral, "cMoneOpe", document.currency.value)

        emis = etree.SubElement(gral, _q("gEmis"))
        _add(emis, "dRucEm", issuer.ruc)
        _add(emis, "dDVEmi", issuer.dv)
        _add(emis, "iTipCont", int(issuer.taxpayer_type))
        _add(emis, "dNomEmi", issuer.business_name)

        receiver = document.receiver
        if isinstance(receiver, SelfBilledSeller):
            # La autofactura describe al vendedor dentro de gCamAE
            rec = etree.SubElement(gral, _q("gCamAE"))
            _add(rec, "iNatVen", receiver.seller_type)
            _add(rec, "dNumIDVen", receiver.id_number)
            _add(rec, "dNomVen", receiver.name)
            _add(rec, "dDirVen", receiver.address)
            return

        rec = etree.SubElement(gral, _q("gDatRec"))
        if isinstance(receiver, TaxpayerReceiver):
            _add(rec, "iNatRec", 1)
            _add(rec, "dRucRec", receiver.ruc)
            _add(rec, "dDVRec", receiver.dv)
        elif isinstance(receiver, NonTaxpayerReceiver):
            _add(rec, "iNatRec", 2)
            _add(rec, "iTipIDRec", receiver.id_type)
            _add(rec, "dNumIDRec", receiver.id_number)
        _add(rec, "dNomRec", receiver.name)
        if receiver.address:
            _add(rec, "dDirRec", receiver.address)
        if receiver.email:
            _add(rec, "dEmailRec", receiver.email)

    def _build_items(self, de: etree._Element, document: DocumentData) -> None:
        dtip = etree.SubElement(de, _q("gDtipDE"))
        for item in document.items:
            cam = etree.SubElement(dtip, _q("gCamItem"))
            _add(cam, "dCodInt", item.code)
            _add(cam, "dDesProSer", item.description)
            _add(cam, "cUniMed", item.unit)
            _add(cam, "dCantProSer", item.quantity)
            val = etree.SubElement(cam, _q("gValorItem"))
            _add(val, "dPUniProSer", _fmt_amount(item.unit_price, document.currency))
            _add(val, "dTotBruOpeItem", _fmt_amount(item.subtotal, document.currency))
            iva = etree.SubElement(cam, _q("gCamIVA"))
            _add(iva, "iAfecIVA", 1 if item.tax_rate else 3)
            _add(iva, "dTasaIVA", int(item.tax_rate))

    def _build_totals(self, de: etree._Element, document: DocumentData) -> None:
        totals = document.totals
        currency = document.currency
        sub = etree.SubElement(de, _q("gTotSub"))
        _add(sub, "dSubExe", _fmt_amount(totals.subtotal_exempt, currency))
        _add(sub, "dSub5", _fmt_amount(totals.subtotal_5, currency))
        _add(sub, "dSub10", _fmt_amount(totals.subtotal_10, currency))
        _add(sub, "dIVA5", _fmt_amount(totals.tax_5, currency))
        _add(sub, "dIVA10", _fmt_amount(totals.tax_10, currency))
        _add(sub, "dTotIVA", _fmt_amount(totals.total_tax, currency))
        _add(sub, "dTotGralOpe", _fmt_amount(totals.grand_total, currency))
