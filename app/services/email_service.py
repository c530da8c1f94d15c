"""
TPCS-DIFA — Result Email Notifier

Composes the plain-text result email and delivers it through the Resend HTTP
API.  Delivery is a single attempt: failures are logged and reported as
``False`` so the caller decides how to answer the webhook.

When ``RESEND_API_KEY`` or ``FROM_EMAIL`` is not configured the notifier runs
disabled and reports success, which keeps the webhook flow usable in
development.
"""

from __future__ import annotations

import httpx
import structlog

from app.config import Settings, get_settings
from app.schemas.scoring import ClassificationResult

logger = structlog.get_logger("tpcs.email_service")


def compose_result_email(result: ClassificationResult) -> tuple[str, str]:
    """Return ``(subject, text)`` for a scoring result."""
    quality = result.quality
    subject = f"Ton résultat TPCS-DIFA : {result.family} ({result.code})"
    text = (
        "Bonjour,\n"
        "\n"
        "Merci d'avoir passé le test TPCS-DIFA.\n"
        f"Famille : {result.family}\n"
        f"Code 4L : {result.code}\n"
        "\n"
        "Qualité:\n"
        f"- Cohérence miroirs: {quality.mirror_consistency:.2f}\n"
        f"- Variabilité réponses: {quality.response_variability:.2f}\n"
        f"Flags: {', '.join(quality.flags)}\n"
        "\n"
        "À bientôt,\n"
        "L'équipe DIFA"
    )
    return subject, text


class EmailService:
    """Thin async client for the Resend ``/emails`` endpoint."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    async def send(self, to: str, subject: str, text: str) -> bool:
        """Send a plain-text email; return ``True`` on success."""
        log = logger.bind(to=to)

        if not self.settings.email_enabled:
            log.warning(
                "email_disabled",
                reason="RESEND_API_KEY or FROM_EMAIL not configured",
            )
            return True

        payload = {
            "from": self.settings.FROM_EMAIL,
            "to": to,
            "subject": subject,
            "text": text,
        }
        headers = {"Authorization": f"Bearer {self.settings.RESEND_API_KEY}"}

        try:
            if self._client is not None:
                response = await self._client.post(
                    self.settings.RESEND_API_URL,
                    json=payload,
                    headers=headers,
                    timeout=self.settings.EMAIL_TIMEOUT_SECONDS,
                )
            else:
                async with httpx.AsyncClient(
                    timeout=self.settings.EMAIL_TIMEOUT_SECONDS,
                ) as client:
                    response = await client.post(
                        self.settings.RESEND_API_URL,
                        json=payload,
                        headers=headers,
                    )
        except httpx.HTTPError as exc:
            log.error("email_send_exception", error=str(exc))
            return False

        if response.is_error:
            log.error(
                "email_provider_error",
                status=response.status_code,
                body=response.text,
            )
            return False

        log.info("email_sent", status=response.status_code)
        return True

    async def send_result(self, to: str, result: ClassificationResult) -> bool:
        subject, text = compose_result_email(result)
        return await self.send(to, subject, text)
