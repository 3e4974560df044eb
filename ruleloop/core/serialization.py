"""
JSON helpers for values stored in JSON columns.
"""

import base64
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


def make_json_serializable(obj):
    """
    Recursively convert non-JSON-serializable objects to serializable format.

    Handles:
    - datetime/date → ISO 8601 string
    - bytes → base64 string
    - Decimal → float
    - Enum → its value
    - sets/tuples → lists
    - custom objects → str(obj)
    """
    if isinstance(obj, dict):
        return {str(k): make_json_serializable(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple, set)):
        return [make_json_serializable(item) for item in obj]
    elif isinstance(obj, Enum):
        return obj.value
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, bytes):
        return base64.b64encode(obj).decode('ascii')
    elif isinstance(obj, Decimal):
        return float(obj)
    elif isinstance(obj, (str, int, float, bool)) or obj is None:
        return obj
    else:
        return str(obj)
