"""
Módulo de Pagos recibidos

- ledger: normalización de estados, cálculo de saldos, validación de asignaciones
  y máquina de estados del pago (funciones puras)
- service: registro por el cliente, verificación/rechazo por el admin
"""
