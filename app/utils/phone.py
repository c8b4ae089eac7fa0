# Bangladesh mobile numbers, optional +88 prefix
PHONE_PATTERN = r"^(\+88)?01[3-9]\d{8}$"

COUNTRY_PREFIX = "+88"


def normalize_phone(value: str) -> str:
    """National form (01XXXXXXXXX), the form orders and blocklist rows use."""
    value = value.strip()
    if value.startswith(COUNTRY_PREFIX):
        return value[len(COUNTRY_PREFIX):]
    return value
