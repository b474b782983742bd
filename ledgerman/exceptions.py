"""
Exceptions for Ledgerman.

All errors are LedgerError with a structured code for programmatic handling.
Typed subclasses let callers catch one family of failures without matching codes.
"""

from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    """
    Structured exception for ledger operations.

    Usage:
        try:
            inventory.consume_batch(batch.pk, Decimal('10'))
        except InsufficientBatchStock as e:
            print(f"Só restam {e.data['remaining']}")
        except LedgerError as e:
            log(e.code, e.as_dict())

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    default_code = 'LEDGER_ERROR'

    _default_messages = {
        'LEDGER_ERROR': 'Erro no livro de estoque',
        'INVALID_MOVEMENT': 'Movimento inválido',
        'UNKNOWN_KIND': 'Tipo de movimento desconhecido',
        'NON_POSITIVE_INWARD': 'Entradas exigem quantidade positiva',
        'ZERO_QUANTITY': 'Quantidade não pode ser zero',
        'INVALID_QUANTITY': 'Quantidade inválida',
        'NEGATIVE_UNIT_COST': 'Custo unitário não pode ser negativo',
        'BATCH_PRODUCT_MISMATCH': 'Lote pertence a outro produto',
        'BATCH_ALREADY_RECEIVED': 'Lote já possui recebimento registrado',
        'WRONG_DIRECTION': 'Tipo de movimento incompatível com a operação',
        'INSUFFICIENT_BATCH_STOCK': 'Quantidade insuficiente no lote',
        'PRODUCT_NOT_FOUND': 'Produto não encontrado',
        'BATCH_NOT_FOUND': 'Lote não encontrado',
        'ALERT_NOT_FOUND': 'Alerta não encontrado',
        'DUPLICATE_BATCH': 'Número de lote já existe para este produto',
        'INVALID_STATUS': 'Status inválido para esta operação',
        'INVALID_METHOD': 'Método de valoração inválido',
        'OPENING_MISMATCH': 'Saldo de abertura não corresponde ao produto/método',
        'NEGATIVE_STOCK': 'Consumo excedeu as camadas de custo disponíveis',
        'INVALID_DATE_RANGE': 'Intervalo de datas inválido',
        'REASON_REQUIRED': 'Motivo é obrigatório',
        'ALREADY_REVERSED': 'Movimento já foi estornado',
        'INVALID_ORDER': 'Ordem de consumo inválida',
        'MOVEMENT_NOT_FOUND': 'Movimento não encontrado',
        'MOVEMENT_INACTIVE': 'Movimento já está inativo',
        'ALERT_IDS_REQUIRED': 'Informe ao menos um alerta',
    }

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        self.code = code or self.default_code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: str(v) if isinstance(v, Decimal) else v
                for k, v in self.data.items()
            }
        }


class InvalidMovement(LedgerError):
    """Bad sign/kind combination, unknown kind or malformed amounts."""

    default_code = 'INVALID_MOVEMENT'


class InsufficientBatchStock(LedgerError):
    """Consumption exceeds what the batch (or the active layers) still hold."""

    default_code = 'INSUFFICIENT_BATCH_STOCK'

    @property
    def remaining(self) -> Decimal:
        """Shortcut for data['remaining']."""
        return self.data.get('remaining', Decimal('0'))

    @property
    def requested(self) -> Decimal:
        """Shortcut for data['requested']."""
        return self.data.get('requested', Decimal('0'))


class ProductNotFound(LedgerError):
    default_code = 'PRODUCT_NOT_FOUND'


class BatchNotFound(LedgerError):
    default_code = 'BATCH_NOT_FOUND'


class NegativeStockEncountered(LedgerError):
    """
    Data-integrity warning: a valuation scan consumed more than the layers held.

    The snapshot is persisted and flagged before this is raised, so callers
    can still inspect ``snapshot``.
    """

    default_code = 'NEGATIVE_STOCK'

    def __init__(self, code: str | None = None, message: str | None = None,
                 snapshot=None, **data):
        super().__init__(code, message, **data)
        self.snapshot = snapshot


class InvalidDateRange(LedgerError):
    default_code = 'INVALID_DATE_RANGE'
