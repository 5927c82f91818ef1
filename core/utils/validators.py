import re

PHONE_PATTERN = r'^[+]?[(]?[0-9]{1,4}[)]?[-\s.]?[(]?[0-9]{1,4}[)]?[-\s.]?[0-9]{1,9}$'


def is_valid_phone(phone: str) -> bool:
    """
    Accepts at most three digit groups with one separator between groups,
    e.g. 0612345678, +33 612345678 or (555) 123-4567
    """
    if not phone:
        return False
    return bool(re.match(PHONE_PATTERN, phone.strip()))
