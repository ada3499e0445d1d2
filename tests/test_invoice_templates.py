# Overview: Pytest coverage for invoice templates and the single-default rule.

import pytest

from posbill.extensions import db
from posbill.models import InvoiceTemplate
from posbill.services import invoice_template_service
from posbill.services.invoice_template_service import STYLE_DEFAULTS, TemplateError


def _defaults(store_id):
    db.session.expire_all()
    return [
        t.name for t in db.session.query(InvoiceTemplate).filter_by(store_id=store_id, is_default=True).all()
    ]


def _create(client, headers, name, **extra):
    body = {"name": name}
    body.update(extra)
    return client.post('/api/invoice-templates', headers=headers, json=body)


class TestCreateTemplate:
    def test_first_template_becomes_default(self, client, headers_a, store_a):
        resp = _create(client, headers_a, "Standard")
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["isDefault"] is True
        assert body["headerHtml"] == invoice_template_service.DEFAULT_HEADER_HTML
        assert body["footerHtml"] == invoice_template_service.DEFAULT_FOOTER_HTML

    def test_second_template_is_not_default(self, client, headers_a, store_a):
        _create(client, headers_a, "Standard")
        resp = _create(client, headers_a, "Festive")
        assert resp.get_json()["isDefault"] is False
        assert _defaults(store_a.id) == ["Standard"]

    def test_create_as_default_moves_default(self, client, headers_a, store_a):
        _create(client, headers_a, "Standard")
        resp = _create(client, headers_a, "Festive", isDefault=True)
        assert resp.get_json()["isDefault"] is True
        assert _defaults(store_a.id) == ["Festive"]

    def test_name_required(self, client, headers_a):
        resp = client.post('/api/invoice-templates', headers=headers_a, json={"headerHtml": "<h1>x</h1>"})
        assert resp.status_code == 400

    def test_known_styles_accepted(self, client, headers_a):
        resp = _create(client, headers_a, "Styled", styles={"primaryColor": "#ff0000", "fontSize": "14px"})
        assert resp.status_code == 201
        assert resp.get_json()["styles"] == {"primaryColor": "#ff0000", "fontSize": "14px"}

    @pytest.mark.parametrize("styles", [
        {"unknownKey": "red"},
        {"primaryColor": "red; background: url(x)"},
        {"fontFamily": "</style><script>"},
        {"fontSize": 14},
    ])
    def test_unsafe_styles_rejected(self, client, headers_a, styles):
        resp = _create(client, headers_a, "Bad", styles=styles)
        assert resp.status_code == 400


class TestDefaultRule:
    """Once a store has templates, exactly one is the default."""

    def test_set_default(self, client, headers_a, store_a):
        _create(client, headers_a, "Standard")
        festive = _create(client, headers_a, "Festive").get_json()

        resp = client.post(f'/api/invoice-templates/{festive["id"]}/set-default', headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["isDefault"] is True
        assert _defaults(store_a.id) == ["Festive"]

    def test_update_to_default(self, client, headers_a, store_a):
        _create(client, headers_a, "Standard")
        festive = _create(client, headers_a, "Festive").get_json()

        resp = client.put(f'/api/invoice-templates/{festive["id"]}', headers=headers_a, json={"isDefault": True})
        assert resp.status_code == 200
        assert _defaults(store_a.id) == ["Festive"]

    def test_cannot_unset_default(self, client, headers_a, store_a):
        standard = _create(client, headers_a, "Standard").get_json()
        resp = client.put(f'/api/invoice-templates/{standard["id"]}', headers=headers_a, json={"isDefault": False})
        assert resp.status_code == 400
        assert _defaults(store_a.id) == ["Standard"]

    def test_cannot_delete_default(self, client, headers_a, store_a):
        standard = _create(client, headers_a, "Standard").get_json()
        resp = client.delete(f'/api/invoice-templates/{standard["id"]}', headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Cannot delete the default template"

    def test_delete_non_default(self, client, headers_a, store_a):
        _create(client, headers_a, "Standard")
        festive = _create(client, headers_a, "Festive").get_json()
        assert client.delete(f'/api/invoice-templates/{festive["id"]}', headers=headers_a).status_code == 204
        assert db.session.query(InvoiceTemplate).count() == 1

    def test_defaults_are_per_store(self, client, headers_a, headers_b, store_a, store_b):
        _create(client, headers_a, "A Standard")
        resp = _create(client, headers_b, "B Standard")
        assert resp.get_json()["isDefault"] is True
        assert _defaults(store_a.id) == ["A Standard"]
        assert _defaults(store_b.id) == ["B Standard"]

    def test_service_unset_default_raises(self, db_session, store_a):
        template = invoice_template_service.create_template(store_a.id, {"name": "Only"})
        with pytest.raises(TemplateError):
            invoice_template_service.update_template(template.id, store_a.id, {"isDefault": False})


class TestStoreLock:
    """
    Writes that can move the default lock the store row before reading any
    template state, so concurrent writes for one store run one after another.
    """

    @pytest.fixture
    def calls(self, monkeypatch):
        calls = []
        real_lock = invoice_template_service._lock_store_templates
        real_lookup = invoice_template_service.get_default_template

        def _lock(store_id):
            calls.append(("lock", store_id))
            real_lock(store_id)

        def _lookup(store_id):
            calls.append(("lookup", store_id))
            return real_lookup(store_id)

        monkeypatch.setattr(invoice_template_service, "_lock_store_templates", _lock)
        monkeypatch.setattr(invoice_template_service, "get_default_template", _lookup)
        return calls

    def test_first_template_locks_before_default_check(self, db_session, store_a, calls):
        template = invoice_template_service.create_template(store_a.id, {"name": "Standard"})
        assert template.is_default is True
        assert calls == [("lock", store_a.id), ("lookup", store_a.id)]

    def test_default_changes_lock_store(self, db_session, store_a, calls):
        first = invoice_template_service.create_template(store_a.id, {"name": "Standard"})
        second = invoice_template_service.create_template(store_a.id, {"name": "Festive"})
        calls.clear()

        invoice_template_service.set_default_template(second.id, store_a.id)
        invoice_template_service.update_template(first.id, store_a.id, {"isDefault": True})
        invoice_template_service.delete_template(second.id, store_a.id)

        assert calls == [("lock", store_a.id)] * 3
        assert _defaults(store_a.id) == ["Standard"]

    def test_delete_rechecks_default_under_lock(self, db_session, store_a, calls):
        first = invoice_template_service.create_template(store_a.id, {"name": "Standard"})
        second = invoice_template_service.create_template(store_a.id, {"name": "Festive"})
        invoice_template_service.set_default_template(second.id, store_a.id)

        with pytest.raises(TemplateError):
            invoice_template_service.delete_template(second.id, store_a.id)
        invoice_template_service.delete_template(first.id, store_a.id)
        assert _defaults(store_a.id) == ["Festive"]


class TestReadTemplates:
    def test_list_and_get(self, client, headers_a, headers_b):
        standard = _create(client, headers_a, "Standard").get_json()
        _create(client, headers_b, "Other")

        listed = client.get('/api/invoice-templates', headers=headers_a).get_json()
        assert [t["name"] for t in listed] == ["Standard"]

        resp = client.get(f'/api/invoice-templates/{standard["id"]}', headers=headers_a)
        assert resp.get_json()["name"] == "Standard"

    def test_default_for_own_store(self, client, headers_a, store_a):
        assert client.get(f'/api/invoice-templates/default/{store_a.id}', headers=headers_a).status_code == 404

        _create(client, headers_a, "Standard")
        resp = client.get(f'/api/invoice-templates/default/{store_a.id}', headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Standard"

    def test_default_for_other_store_forbidden(self, client, headers_a, store_b):
        resp = client.get(f'/api/invoice-templates/default/{store_b.id}', headers=headers_a)
        assert resp.status_code == 403


class TestStyles:
    def test_merged_styles_fill_defaults(self, db_session, store_a):
        template = invoice_template_service.create_template(
            store_a.id, {"name": "Blue", "styles": {"primaryColor": "#0000ff"}}
        )
        styles = invoice_template_service.merged_styles(template)
        assert styles["primaryColor"] == "#0000ff"
        assert styles["fontFamily"] == STYLE_DEFAULTS["fontFamily"]
        assert set(styles) == set(STYLE_DEFAULTS)

    def test_merged_styles_without_template(self):
        assert invoice_template_service.merged_styles(None) == STYLE_DEFAULTS
