"""
Data sanitization for activity log details
"""
from typing import Optional, Dict, Any

class DataSanitizer:
    """Sanitize sensitive data before it is written to the activity log"""

    # Field names whose values are dropped entirely
    SENSITIVE_FIELDS = {
        'password', 'token', 'secret', 'authorization', 'api_key'
    }

    # Field names whose values are partially masked
    MASKED_FIELDS = {'phone', 'phone_number', 'phonenumber'}

    MAX_VALUE_SIZE = 1000  # Max characters for a single string value
    MAX_LIST_ITEMS = 100

    @staticmethod
    def mask(value: str, visible_chars: int = 4) -> str:
        if not value or len(value) <= visible_chars:
            return '*' * len(value) if value else ''
        return '*' * (len(value) - visible_chars) + value[-visible_chars:]

    @staticmethod
    def sanitize_value(value: Any) -> Any:
        if isinstance(value, dict):
            return DataSanitizer.sanitize_dict(value)
        if isinstance(value, (list, tuple, set)):
            items = list(value)
            sanitized = [DataSanitizer.sanitize_value(item) for item in items[:DataSanitizer.MAX_LIST_ITEMS]]
            if len(items) > DataSanitizer.MAX_LIST_ITEMS:
                sanitized.append(f"...[{len(items) - DataSanitizer.MAX_LIST_ITEMS} more]")
            return sanitized
        if isinstance(value, str):
            return DataSanitizer.sanitize_string(value)
        if value is None or isinstance(value, (bool, int, float)):
            return value
        return DataSanitizer.sanitize_string(str(value))

    @staticmethod
    def sanitize_dict(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively sanitize dictionary data"""
        if not isinstance(data, dict):
            return data

        sanitized = {}
        for key, value in data.items():
            lowered = str(key).lower()
            if any(sensitive in lowered for sensitive in DataSanitizer.SENSITIVE_FIELDS):
                sanitized[key] = "[REDACTED]"
            elif lowered in DataSanitizer.MASKED_FIELDS and isinstance(value, str):
                sanitized[key] = DataSanitizer.mask(value)
            else:
                sanitized[key] = DataSanitizer.sanitize_value(value)
        return sanitized

    @staticmethod
    def sanitize_string(text: Optional[str]) -> Optional[str]:
        if not text:
            return text
        if len(text) > DataSanitizer.MAX_VALUE_SIZE:
            text = text[:DataSanitizer.MAX_VALUE_SIZE] + "...[TRUNCATED]"
        return text
