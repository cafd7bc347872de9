"""
PII (Personally Identifiable Information) masking utilities.
"""
import re


PII_FIELDS = {
    "email", "phone", "name", "customer_name", "customer_phone", "author",
    "customername", "customerphone",
}


def mask_email(email: str) -> str:
    """Mask email address."""
    if "@" not in email:
        return email
    local, domain = email.split("@", 1)
    masked = "**" if len(local) <= 2 else local[:2] + "*" * (len(local) - 2)
    return f"{masked}@{domain}"


def mask_phone(phone: str) -> str:
    """Mask phone number, keeping the first and last two characters."""
    if len(phone) <= 4:
        return "*" * len(phone)
    return phone[:2] + "*" * (len(phone) - 4) + phone[-2:]


def mask_name(name: str) -> str:
    """Mask name."""
    if len(name) <= 2:
        return "**"
    return name[0] + "*" * (len(name) - 2) + name[-1]


def mask_value(value: str) -> str:
    if "@" in value:
        return mask_email(value)
    if re.match(r'^[\d\s\+\-\(\)]+$', value):
        return mask_phone(value)
    return mask_name(value)


def mask_pii_in_dict(data: dict) -> dict:
    """Mask PII in dictionary recursively."""
    masked = {}
    for key, value in data.items():
        if isinstance(value, dict):
            masked[key] = mask_pii_in_dict(value)
        elif isinstance(value, list):
            masked[key] = [mask_pii_in_dict(item) if isinstance(item, dict) else item for item in value]
        elif key.lower() in PII_FIELDS and isinstance(value, str) and value:
            masked[key] = mask_value(value)
        else:
            masked[key] = value
    return masked
