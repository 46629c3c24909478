"""
Cálculo de saldos y asignación de pagos a facturas.

Funciones puras, sin acceso a base de datos: los servicios de facturas y
pagos (y el script de importación) las invocan de la misma forma, de modo que
existe una sola definición de "pago que cuenta" y de "saldo pendiente".

- normalize_payment_status: clasifica cualquier estado (enum, texto libre,
  None) en COUNTED / NOT_COUNTED.
- calculate_balance: amount_paid = suma de pagos que cuentan,
  balance_due = max(0, total - amount_paid).
- validate_allocations: la suma aplicada a facturas no puede superar el
  monto del pago; el remanente es crédito no usado.
- transition_payment: PendingVerification -> Verified | Rejected; ambos
  estados son terminales.

Todos los montos son Decimal cuantizado a 2 decimales (ROUND_HALF_UP).
"""

import enum
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from app.common.exceptions import ConflictError, ValidationError

CENTS = Decimal("0.01")
# Límite de columnas Numeric(15, 2) y Numeric(10, 3)
MAX_MONEY = Decimal("9999999999999.99")
MAX_QUANTITY = Decimal("9999999.999")
ZERO = Decimal("0.00")


class PaymentStatus(str, enum.Enum):
    PENDING_VERIFICATION = "pending_verification"
    VERIFIED = "verified"
    REJECTED = "rejected"


class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    VOID = "void"


class PaymentOutcome(enum.Enum):
    COUNTED = "counted"
    NOT_COUNTED = "not_counted"


# Claves normalizadas (minúsculas, sin separadores) que cuentan como pago recibido.
# Incluye las variantes observadas en datos históricos: "PAID_SUCCESS",
# "Verified Payment", "PAID_SUCCESSFUL".
COUNTED_STATUS_KEYS = frozenset({
    "verified",
    "received",
    "paid",
    "paidsuccess",
    "paidsuccessful",
    "verifiedpayment",
})


def _status_key(status: Any) -> str:
    if isinstance(status, enum.Enum):
        status = status.value
    return re.sub(r"[^a-z0-9]", "", str(status).lower())


def normalize_payment_status(status: Any) -> PaymentOutcome:
    """
    Clasificar un estado de pago.

    Tolerante: None, valores desconocidos o mal escritos son NOT_COUNTED,
    nunca un error.
    """
    if status is None:
        return PaymentOutcome.NOT_COUNTED
    if _status_key(status) in COUNTED_STATUS_KEYS:
        return PaymentOutcome.COUNTED
    return PaymentOutcome.NOT_COUNTED


def is_counted(status: Any) -> bool:
    return normalize_payment_status(status) is PaymentOutcome.COUNTED


def canonical_payment_status(status: Any) -> PaymentStatus:
    """
    Mapear un estado de texto libre al enum del sistema (importación de datos).

    Lo que cuenta es Verified; rechazos explícitos son Rejected; el resto
    queda pendiente de verificación.
    """
    if is_counted(status):
        return PaymentStatus.VERIFIED
    key = _status_key(status) if status is not None else ""
    if key in {"rejected", "failed", "notreceived", "declined", "cancelled", "canceled"}:
        return PaymentStatus.REJECTED
    return PaymentStatus.PENDING_VERIFICATION


def to_money(value: Any, field: str = "amount") -> Decimal:
    """
    Convertir a Decimal de 2 decimales.

    Los float pasan por str() para no arrastrar error binario. Valores no
    numéricos, negativos o mayores a MAX_MONEY -> ValidationError.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValidationError(f"Monto inválido en {field}", field=field, value=value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        if not amount.is_finite():
            raise ValidationError(f"Monto inválido en {field}", field=field, value=value)
        if amount < 0:
            raise ValidationError(f"El monto en {field} no puede ser negativo", field=field, value=value)
        amount = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Monto inválido en {field}", field=field, value=value)
    if amount > MAX_MONEY:
        raise ValidationError(f"El monto en {field} excede el máximo permitido", field=field, value=value)
    return amount


def _field(entry: Any, name: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(name)
    return getattr(entry, name, None)


@dataclass(frozen=True)
class BalanceSummary:
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal

    @property
    def is_settled(self) -> bool:
        return self.total > 0 and self.balance_due == ZERO

    def as_dict(self) -> dict:
        return {
            "total": self.total,
            "amount_paid": self.amount_paid,
            "balance_due": self.balance_due,
        }


def calculate_balance(total: Any, payments: Optional[Iterable[Any]] = None) -> BalanceSummary:
    """
    Calcular monto pagado y saldo pendiente de una factura.

    `payments` son objetos o mappings con `amount` y `status`; None se trata
    como lista vacía. El sobrepago no genera saldo a favor: el saldo se
    recorta en cero.
    """
    invoice_total = to_money(total, "total")
    amount_paid = ZERO
    for payment in payments or ():
        if is_counted(_field(payment, "status")):
            amount_paid += to_money(_field(payment, "amount"))

    if invoice_total == ZERO:
        balance_due = ZERO
    else:
        balance_due = max(ZERO, invoice_total - amount_paid)

    return BalanceSummary(total=invoice_total, amount_paid=amount_paid, balance_due=balance_due)


def running_balances(total: Any, payments: Optional[Iterable[Any]] = None) -> List[Tuple[Any, Decimal]]:
    """
    Saldo acumulado después de cada pago, en el orden recibido.

    Los pagos que no cuentan repiten el saldo anterior.
    """
    invoice_total = to_money(total, "total")
    paid = ZERO
    rows = []
    for payment in payments or ():
        if is_counted(_field(payment, "status")):
            paid += to_money(_field(payment, "amount"))
        rows.append((payment, max(ZERO, invoice_total - paid)))
    return rows


def validate_allocations(payment_amount: Any, allocations: Optional[Iterable[Any]] = None) -> Decimal:
    """
    Validar la distribución de un pago entre facturas.

    Cada asignación tiene `invoice_id` y `applied_amount`. Retorna el crédito
    no usado (monto - suma aplicada). Entradas inválidas se rechazan con
    ValidationError, nunca se truncan.
    """
    amount = to_money(payment_amount, "amount")
    if amount <= ZERO:
        raise ValidationError("El monto del pago debe ser mayor a 0", amount=amount)

    applied_total = ZERO
    seen = set()
    for allocation in allocations or ():
        invoice_id = _field(allocation, "invoice_id")
        if invoice_id is None:
            raise ValidationError("Cada asignación debe indicar la factura")
        if invoice_id in seen:
            raise ValidationError("La factura aparece más de una vez en el pago", invoice_id=invoice_id)
        seen.add(invoice_id)

        applied = to_money(_field(allocation, "applied_amount"), "applied_amount")
        if applied <= ZERO:
            raise ValidationError("El monto aplicado debe ser mayor a 0", invoice_id=invoice_id)
        applied_total += applied

    if applied_total > amount:
        raise ValidationError(
            f"La suma aplicada ({applied_total}) excede el monto del pago ({amount})",
            applied=applied_total,
            amount=amount
        )

    return amount - applied_total


# Máquina de estados del pago
PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING_VERIFICATION: {PaymentStatus.VERIFIED, PaymentStatus.REJECTED},
    PaymentStatus.VERIFIED: set(),
    PaymentStatus.REJECTED: set(),
}

TERMINAL_PAYMENT_STATUSES = frozenset(
    status for status, targets in PAYMENT_TRANSITIONS.items() if not targets
)


def transition_payment(current: PaymentStatus, target: PaymentStatus) -> PaymentStatus:
    """Validar una transición; ConflictError si no está permitida."""
    if current in TERMINAL_PAYMENT_STATUSES:
        raise ConflictError(
            f"El pago ya está en estado terminal {current.value}",
            current=current.value,
            target=target.value
        )
    if target not in PAYMENT_TRANSITIONS[current]:
        raise ConflictError(
            f"Transición no permitida: {current.value} -> {target.value}",
            current=current.value,
            target=target.value
        )
    return target


def affects_balance(old: PaymentStatus, new: PaymentStatus) -> bool:
    """Entrar o salir de Verified obliga a recalcular las facturas asignadas."""
    return old is not new and PaymentStatus.VERIFIED in (old, new)


def resolve_invoice_status(current: InvoiceStatus, summary: BalanceSummary,
                           due_date: Optional[date], today: Optional[date] = None) -> InvoiceStatus:
    """Estado de la factura derivado del saldo recalculado."""
    if current in (InvoiceStatus.DRAFT, InvoiceStatus.VOID):
        return current
    if summary.is_settled:
        return InvoiceStatus.PAID
    if summary.amount_paid > ZERO:
        return InvoiceStatus.PARTIALLY_PAID
    today = today or date.today()
    if due_date is not None and due_date < today:
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.SENT
