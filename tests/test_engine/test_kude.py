"""Pruebas de la generación del KUDE."""

import pytest

from sifen_de.adapters.errors import RenderError
from sifen_de.errors import DocumentNotFoundError, StateGuardError
from sifen_de.models.enums import DEState


class TestKudeGenerator:
    """Pruebas de KudeGenerator.generate()."""

    def test_renders_and_stores(self, engine, storage, renderer, tenant_id, approved_de):
        key = engine.kude.generate(tenant_id, approved_de)

        assert key == f"kude/{tenant_id}/{approved_de}.pdf"
        stored = storage.objects[key]
        assert stored.content_type == "application/pdf"
        assert stored.data.startswith(b"%PDF")
        assert renderer.rendered[0].ruc == "80000000"

        document = engine.repository.get_document(approved_de)
        assert document.kude_key == key
        assert document.state == DEState.APPROVED

    def test_qr_passed_to_renderer(self, engine, renderer, tenant_id, approved_de):
        engine.kude.generate(tenant_id, approved_de)
        document = engine.repository.get_document(approved_de)
        assert renderer.rendered[0].qr_text == document.qr_text

    def test_renderer_failure(self, engine, renderer, tenant_id, approved_de):
        renderer.fail_with = RuntimeError("fuente no encontrada")
        with pytest.raises(RenderError, match="fuente no encontrada"):
            engine.kude.generate(tenant_id, approved_de)
        assert engine.repository.get_document(approved_de).kude_key is None

    def test_storage_failure(self, engine, storage, tenant_id, approved_de):
        storage.fail_with = RenderError("bucket sin permisos")
        with pytest.raises(RenderError):
            engine.kude.generate(tenant_id, approved_de)

    def test_requires_xml(self, engine, tenant_id, factura_data):
        created = engine.create_de(tenant_id, factura_data)
        with pytest.raises(StateGuardError):
            engine.kude.generate(tenant_id, created.id)

    def test_unknown_document(self, engine, tenant_id):
        with pytest.raises(DocumentNotFoundError):
            engine.kude.generate(tenant_id, "no-existe")

    def test_document_removed_before_storing_key(
        self, engine, repository, storage, tenant_id, approved_de, monkeypatch
    ):
        """Si el DE desaparece tras renderizar, se informa como no encontrado."""
        get_document = repository.get_document
        reads = []

        def vanishing_get(de_id, tenant_id=None):
            reads.append(de_id)
            if len(reads) > 1:
                return None
            return get_document(de_id, tenant_id)

        monkeypatch.setattr(repository, "get_document", vanishing_get)

        with pytest.raises(DocumentNotFoundError, match=approved_de):
            engine.kude.generate(tenant_id, approved_de)
        assert len(reads) == 2
