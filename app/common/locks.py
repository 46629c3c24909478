"""
Locks en proceso por id de entidad.

Complementan el `SELECT ... FOR UPDATE` de la base de datos para los ciclos
read-modify-write (verificación de pagos): dos requests del mismo worker que
tocan el mismo pago se serializan aquí antes de llegar a la transacción.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator


class KeyedLock:
    """Registro de locks indexado por clave (ej: payment_id)."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}
        self._waiters: Dict[Hashable, int] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[key] -= 1
                if self._waiters[key] == 0:
                    del self._waiters[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Un registro por tipo de entidad
payment_locks = KeyedLock()
