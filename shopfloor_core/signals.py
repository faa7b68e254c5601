# shopfloor_core/signals.py
from __future__ import annotations

from django.conf import settings
from django.core.mail import send_mail
from django.db.models.signals import post_save
from django.dispatch import receiver

from shopfloor_core.models import StageAlert


# ===============================================================
# STALLED BATCH ALERTS
# ===============================================================
@receiver(post_save, sender=StageAlert)
def email_stage_alert(sender, instance: StageAlert, created: bool, **kwargs):
    """
    Optional e-mail copy of a newly raised stage alert (feature-flagged).
    In-app notifications are sent by the scanner itself.
    """
    if not created:
        return

    if not getattr(settings, "STAGE_ALERT_EMAIL_NOTIFICATIONS", False):
        return

    recipients = getattr(settings, "STAGE_ALERT_NOTIFY_EMAILS", None)
    if not recipients:
        return

    subject = (
        f"[Shopfloor] Batch {instance.batch.batch_number} "
        f"{instance.severity.upper()} in {instance.stage}"
    )

    body = "\n".join(
        [
            "A batch has stayed in one stage past its threshold.",
            "",
            f"Batch: {instance.batch.batch_number}",
            f"Stage: {instance.stage}",
            f"Severity: {instance.severity}",
            f"Dwell: {instance.dwell_seconds // 3600}h (threshold {instance.threshold_seconds // 3600}h)",
            f"At: {instance.triggered_at}",
        ]
    )

    send_mail(
        subject=subject,
        message=body,
        from_email=getattr(settings, "DEFAULT_FROM_EMAIL", None),
        recipient_list=list(recipients),
        fail_silently=True,
    )
