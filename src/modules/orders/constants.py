"""Order pipeline constants.

Status choices with their display labels and colour tones, the nominal
happy-path sequence used by the progress pipeline, and the small enums
carried by side-channel order fields.
"""

from django.db import models

from modules.core.actors import SYSTEM_ACTOR_NAME


class OrderStatus(models.TextChoices):
    RASCUNHO = "rascunho", "Rascunho"
    ENVIADO = "enviado", "Enviado"
    APROVADO_CLIENTE = "aprovado_cliente", "Aprovado pelo Cliente"
    AGUARDANDO_FINANCEIRO = "aguardando_financeiro", "Aguardando Financeiro"
    APROVADO_FINANCEIRO = "aprovado_financeiro", "Aprovado Financeiro"
    REJEITADO_FINANCEIRO = "rejeitado_financeiro", "Rejeitado Financeiro"
    AGUARDANDO_GESTOR = "aguardando_gestor", "Aguardando Gestor"
    APROVADO_GESTOR = "aprovado_gestor", "Aprovado Gestor"
    REJEITADO_GESTOR = "rejeitado_gestor", "Rejeitado Gestor"
    AGUARDANDO_PRODUCAO = "aguardando_producao", "Aguardando Produção"
    EM_PRODUCAO = "em_producao", "Em Produção"
    PRODUCAO_FINALIZADA = "producao_finalizada", "Produção Finalizada"
    PRODUTO_LIBERADO = "produto_liberado", "Produto Liberado"


# Display tone per status (mapped to a colour by the front-end theme).
STATUS_COLORS: dict[str, str] = {
    OrderStatus.RASCUNHO: "muted",
    OrderStatus.ENVIADO: "info",
    OrderStatus.APROVADO_CLIENTE: "info",
    OrderStatus.AGUARDANDO_FINANCEIRO: "warning",
    OrderStatus.APROVADO_FINANCEIRO: "success",
    OrderStatus.REJEITADO_FINANCEIRO: "destructive",
    OrderStatus.AGUARDANDO_GESTOR: "warning",
    OrderStatus.APROVADO_GESTOR: "success",
    OrderStatus.REJEITADO_GESTOR: "destructive",
    OrderStatus.AGUARDANDO_PRODUCAO: "warning",
    OrderStatus.EM_PRODUCAO: "producao",
    OrderStatus.PRODUCAO_FINALIZADA: "success",
    OrderStatus.PRODUTO_LIBERADO: "success",
}

# Nominal happy path.  Descriptive only (drives the progress pipeline);
# the financial shortcut to production legitimately skips the manager steps.
STATUS_FLOW: list[str] = [
    OrderStatus.RASCUNHO,
    OrderStatus.AGUARDANDO_FINANCEIRO,
    OrderStatus.APROVADO_FINANCEIRO,
    OrderStatus.AGUARDANDO_GESTOR,
    OrderStatus.APROVADO_GESTOR,
    OrderStatus.AGUARDANDO_PRODUCAO,
    OrderStatus.EM_PRODUCAO,
    OrderStatus.PRODUCAO_FINALIZADA,
    OrderStatus.PRODUTO_LIBERADO,
]

PIPELINE_STEP_LABELS: dict[str, str] = {
    OrderStatus.RASCUNHO: "Criado",
    OrderStatus.AGUARDANDO_FINANCEIRO: "Financeiro",
    OrderStatus.APROVADO_FINANCEIRO: "Aprovado Fin.",
    OrderStatus.AGUARDANDO_GESTOR: "Gestor",
    OrderStatus.APROVADO_GESTOR: "Aprovado Gestor",
    OrderStatus.AGUARDANDO_PRODUCAO: "Produção",
    OrderStatus.EM_PRODUCAO: "Em Produção",
    OrderStatus.PRODUCAO_FINALIZADA: "Finalizado",
    OrderStatus.PRODUTO_LIBERADO: "Liberado",
}

REJECTION_STATES: set[str] = {
    OrderStatus.REJEITADO_FINANCEIRO,
    OrderStatus.REJEITADO_GESTOR,
}

TERMINAL_STATES: set[str] = REJECTION_STATES | {OrderStatus.PRODUTO_LIBERADO}


class PaymentStatus(models.TextChoices):
    PAGO = "pago", "Pago"
    PARCIAL = "parcial", "Parcial"
    PENDENTE = "pendente", "Pendente"


class DiscountType(models.TextChoices):
    PERCENT = "percent", "Percentual"
    VALUE = "value", "Valor"


class OrderType(models.TextChoices):
    ENTREGA = "entrega", "Entrega"
    INSTALACAO = "instalacao", "Instalação"


SYSTEM_USER = SYSTEM_ACTOR_NAME
QR_RELEASE_USER = "QR Code Scan"

# Order fields a transition may patch alongside the status change.
TRANSITION_FIELDS: frozenset[str] = frozenset(
    {
        "payment_status",
        "rejection_reason",
        "receipt_url",
        "production_started_at",
        "production_finished_at",
        "released_at",
        "released_by",
        "qr_code",
        "delivery_date",
    }
)

ORDER_NUMBER_MAX_RETRIES = 5
