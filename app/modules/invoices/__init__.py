"""
Módulo de Facturación (Invoices)

- Facturas creadas por el admin o generadas desde órdenes de venta aprobadas
- Estados: draft, sent, partially_paid, paid, overdue, void
- Saldo persistido (amount_paid, balance_due), recalculado por el ledger de pagos
- Bitácora de actividad por factura
- Vista del portal para el cliente (sin borradores)

Las facturas nunca se eliminan, sólo se anulan.
"""
