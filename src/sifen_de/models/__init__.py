"""Modelos de datos Pydantic del motor de documentos electrónicos."""

from sifen_de.models.config import FiscalConfig, SifenEndpoints, SigningKeys
from sifen_de.models.document import (
    PLACEHOLDER_CDC,
    CreatedDocument,
    DEItem,
    DocumentInput,
    DocumentoElectronico,
    NonTaxpayerReceiver,
    Receiver,
    SelfBilledSeller,
    TaxpayerReceiver,
    TaxTotals,
)
from sifen_de.models.lote import Lote, LoteDetail, LoteItem
from sifen_de.models.series import NumberingSeries, SeriesKey, format_number

__all__ = [
    "CreatedDocument",
    "DEItem",
    "DocumentInput",
    "DocumentoElectronico",
    "FiscalConfig",
    "Lote",
    "LoteDetail",
    "LoteItem",
    "NonTaxpayerReceiver",
    "NumberingSeries",
    "PLACEHOLDER_CDC",
    "Receiver",
    "SelfBilledSeller",
    "SeriesKey",
    "SifenEndpoints",
    "SigningKeys",
    "TaxTotals",
    "TaxpayerReceiver",
    "format_number",
]
