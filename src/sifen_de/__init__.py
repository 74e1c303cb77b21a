"""sifen-de : motor del ciclo de vida de Documentos Electrónicos SIFEN.

ES: Numeración correlativa, emisión (generar → firmar → QR), armado de
    lotes, envío y consulta asíncrona ante la SET, cancelación y KUDE.
EN: Correlative numbering, emission pipeline, batch assembly, async
    submission/polling against the tax authority, cancellation and KUDE.
"""

__version__ = "0.1.0"
