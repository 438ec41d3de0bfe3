"""
Blood Group Helper
Canonical ABO/Rh groups and input normalization
"""

BLOOD_GROUPS = ('A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-')

BLOOD_GROUP_CHOICES = [(group, group) for group in BLOOD_GROUPS]


def normalize_blood_group(value):
    """
    Canonicalize user input: trimmed and uppercased, '' for non-strings

    Args:
        value: Raw blood group input (e.g., ' o+ ')

    Returns:
        Normalized string (e.g., 'O+')
    """
    if not isinstance(value, str):
        return ''
    return value.strip().upper()


def is_valid_blood_group(value):
    return value in BLOOD_GROUPS


class InvalidBloodGroup(ValueError):
    def __init__(self, message='Invalid blood group'):
        super().__init__(message)
        self.message = message


def parse_blood_group(value, required=False):
    """
    Normalize and validate optional blood group input.

    Returns:
        Canonical group, or None when absent and not required

    Raises:
        InvalidBloodGroup
    """
    blood_group = normalize_blood_group(value)
    if not blood_group:
        if required:
            raise InvalidBloodGroup('Valid bloodGroup is required')
        return None
    if not is_valid_blood_group(blood_group):
        raise InvalidBloodGroup()
    return blood_group
