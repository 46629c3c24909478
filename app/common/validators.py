"""
Validadores de datos fiscales y de contacto (India)
"""
import re
from typing import Optional


GSTIN_PATTERN = r'^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$'


def validate_india_phone(phone: str) -> bool:
    """
    Valida número de teléfono de India.
    Formatos válidos:
    - +91XXXXXXXXXX (10 dígitos después del +91)
    - 91XXXXXXXXXX
    - 0XXXXXXXXXX (con prefijo troncal)
    - XXXXXXXXXX (10 dígitos, móviles empiezan por 6-9)
    """
    cleaned = re.sub(r'[\s\-\(\)]', '', phone)

    patterns = [
        r'^\+91[6-9][0-9]{9}$',
        r'^91[6-9][0-9]{9}$',
        r'^0[6-9][0-9]{9}$',
        r'^[6-9][0-9]{9}$',
        r'^0[1-9][0-9]{8,9}$',   # fijo con código STD
    ]

    return any(re.match(pattern, cleaned) for pattern in patterns)


def validate_gstin(gstin: str) -> bool:
    """
    Valida formato de GSTIN (15 caracteres):
    - 2 dígitos de código de estado (01-38)
    - 10 caracteres del PAN
    - 1 dígito de entidad, 'Z' fijo y 1 carácter de control
    """
    cleaned = gstin.strip().upper()
    if not re.match(GSTIN_PATTERN, cleaned):
        return False
    return 1 <= int(cleaned[:2]) <= 38


def validate_pincode(pincode: str) -> bool:
    """PIN code de India: 6 dígitos, no empieza por 0."""
    return bool(re.match(r'^[1-9][0-9]{5}$', pincode.strip()))


def state_code_from_gstin(gstin: Optional[str]) -> Optional[str]:
    """Código de estado (place of supply) a partir del GSTIN."""
    if not gstin or not validate_gstin(gstin):
        return None
    return gstin.strip()[:2]
