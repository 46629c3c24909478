"""
Cálculo de líneas y totales de documentos comerciales.

Compartido por cotizaciones, órdenes de venta y facturas.
"""
from decimal import Decimal
from typing import Iterable, List, Tuple, Type

from app.modules.payments.ledger import ZERO, to_money


def line_amount(quantity, rate) -> Decimal:
    """quantity * rate redondeado a 2 decimales"""
    return to_money(Decimal(str(quantity)) * to_money(rate, "rate"), "amount")


def build_line_items(line_model: Type, lines: Iterable) -> Tuple[List, Decimal]:
    """
    Construir instancias de `line_model` a partir de schemas de línea.

    Retorna (líneas, subtotal).
    """
    built = []
    subtotal = ZERO
    for position, line in enumerate(lines):
        amount = line_amount(line.quantity, line.rate)
        built.append(line_model(
            item_id=line.item_id,
            position=position,
            name=line.name,
            description=line.description,
            unit=line.unit,
            quantity=line.quantity,
            rate=to_money(line.rate, "rate"),
            amount=amount
        ))
        subtotal += amount
    return built, to_money(subtotal, "subtotal")


def copy_line_items(line_model: Type, source_lines: Iterable) -> List:
    """Copiar líneas ya persistidas de un documento a otro (ej: orden -> factura)."""
    return [
        line_model(
            item_id=line.item_id,
            position=line.position,
            name=line.name,
            description=line.description,
            unit=line.unit,
            quantity=line.quantity,
            rate=line.rate,
            amount=line.amount
        )
        for line in source_lines
    ]
