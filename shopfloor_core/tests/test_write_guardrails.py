# shopfloor_core/tests/test_write_guardrails.py

from django.contrib.auth.models import User
from django.core.exceptions import PermissionDenied
from django.test import TestCase

from shopfloor_core.models import AuditLogEntry, Batch, Worker


class StageWriteGuardTests(TestCase):
    """
    current_stage only changes through the transition workflow; the audit
    log only ever grows.
    """

    def setUp(self):
        self.user = User.objects.create_user(username="mgr", password="pass")
        self.manager = Worker.objects.create(
            user=self.user,
            name="Manager",
            role=Worker.ROLE_MANAGER,
            approval_status=Worker.APPROVAL_APPROVED,
        )
        self.batch = Batch.objects.create(
            batch_number="B20250101-001",
            current_stage="intake",
            created_by=self.manager,
        )
        self.entry = AuditLogEntry.objects.create(
            actor=self.manager,
            action=AuditLogEntry.ACTION_CREATE_BATCH,
            batch=self.batch,
            sequence=0,
            to_stage="intake",
        )

    # --------------------------------------------------
    # Batch stage guard
    # --------------------------------------------------
    def test_direct_stage_change_is_blocked(self):
        self.batch.current_stage = "packaging"
        with self.assertRaises(PermissionDenied):
            self.batch.save()

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_stage, "intake")

    def test_other_fields_save_normally(self):
        self.batch.notes = "Rush order"
        self.batch.priority = Batch.PRIORITY_URGENT
        self.batch.save()

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.priority, Batch.PRIORITY_URGENT)

    def test_bypass_kwarg_allows_repair(self):
        self.batch.current_stage = "sanding"
        self.batch.save(_stage_bypass=True)

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_stage, "sanding")

    def test_bypass_attribute_allows_repair(self):
        self.batch._stage_bypass = True
        self.batch.current_stage = "finishing"
        self.batch.save()

        self.batch.refresh_from_db()
        self.assertEqual(self.batch.current_stage, "finishing")

    # --------------------------------------------------
    # Audit log immutability
    # --------------------------------------------------
    def test_audit_entry_cannot_be_edited(self):
        self.entry.to_stage = "packaging"
        with self.assertRaises(PermissionDenied):
            self.entry.save()

    def test_audit_entry_cannot_be_deleted(self):
        with self.assertRaises(PermissionDenied):
            self.entry.delete()
        self.assertTrue(AuditLogEntry.objects.filter(pk=self.entry.pk).exists())

    def test_audit_queryset_cannot_update_or_delete(self):
        with self.assertRaises(PermissionDenied):
            AuditLogEntry.objects.filter(batch=self.batch).update(to_stage="shipped")
        with self.assertRaises(PermissionDenied):
            AuditLogEntry.objects.filter(batch=self.batch).delete()

        self.assertEqual(AuditLogEntry.objects.get(pk=self.entry.pk).to_stage, "intake")
