"""Tasks assíncronas do módulo core."""

import structlog
from celery import shared_task

from modules.core.models import OutboxEvent

logger = structlog.get_logger(__name__)

OUTBOX_BATCH_SIZE = 100


@shared_task(name="core.relay_outbox_events")
def relay_outbox_events(batch_size: int = OUTBOX_BATCH_SIZE) -> dict:
    """Publica eventos PENDING do outbox (ordem de criação).

    Não há broker externo: o evento é emitido no log estruturado e marcado
    como PUBLISHED.  Falhas ficam registradas via ``mark_as_failed``.
    """
    published = 0
    failed = 0
    pending = OutboxEvent.objects.pending()[:batch_size]

    for event in pending:
        try:
            logger.info(
                "outbox.event_published",
                event_type=event.event_type,
                aggregate_id=event.aggregate_id,
                topic=event.topic,
                payload=event.payload,
            )
            event.mark_as_published()
            published += 1
        except Exception as exc:
            event.mark_as_failed(str(exc))
            failed += 1
            logger.error(
                "outbox.event_failed",
                event_id=str(event.id),
                error=str(exc),
            )

    return {"published": published, "failed": failed}
