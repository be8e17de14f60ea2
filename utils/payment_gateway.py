"""
Payment reference helpers (manual approval flow, no external gateway)
"""
import uuid
from datetime import datetime


def generate_transaction_id(method=None):
    """Generate unique transaction id, e.g. MOMO-3F2A9C0D11BE-20260101"""
    prefix = (method or 'PAY').upper().replace('_', '')[:8]
    return f"{prefix}-{uuid.uuid4().hex[:12].upper()}-{datetime.utcnow().strftime('%Y%m%d')}"
