"""
Tests for the read-only payment admin.
"""

from django.contrib.admin.sites import site
from django.urls import reverse

from payments.admin import PaymentAdmin
from payments.models import Payment
from payments.tests.factories import UserFactory


class TestPaymentAdmin:
    def test_changelist_renders(self, db, client, processing_payment):
        admin_user = UserFactory(username="admin", is_staff=True, is_superuser=True)
        client.force_login(admin_user)

        response = client.get(reverse("admin:payments_payment_changelist"))

        assert response.status_code == 200

    def test_amount_display(self, db, pending_payment):
        admin = PaymentAdmin(Payment, site)

        assert admin.amount_display(pending_payment) == "500 KES"

    def test_payments_cannot_be_added_or_deleted(self, db, rf, pending_payment):
        admin = PaymentAdmin(Payment, site)
        request = rf.get("/")

        assert not admin.has_add_permission(request)
        assert not admin.has_delete_permission(request, pending_payment)
