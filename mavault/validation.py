"""
MaVault Validation Module
Input validation for account records, generator settings and backups
"""

import re
from typing import Dict, Optional, Tuple

import email_validator

from . import config
from .models import AccountCategory

MAX_FIELD_LENGTH = 500
MAX_NAME_LENGTH = 200
MIN_BACKUP_PASSPHRASE_LENGTH = 8


def validate_generation_length(length) -> Tuple[bool, str]:
    """
    Check a requested password length against the supported range

    Returns:
        (is_valid, validation_message)
    """
    if isinstance(length, bool) or not isinstance(length, int):
        return False, "Length must be a whole number"

    if length < config.PASSWORD_MIN_LENGTH:
        return False, f"Minimum password length is {config.PASSWORD_MIN_LENGTH} characters"

    if length > config.PASSWORD_MAX_LENGTH:
        return False, f"Maximum password length is {config.PASSWORD_MAX_LENGTH} characters"

    return True, "Length accepted"

def validate_url(url: str) -> bool:
    """
    Check the optional website of an account

    Accepts bare hostnames ("github.com") as well as http(s) URLs with an
    optional port and path; the account form leaves the field blank when
    no website is known, so an empty value passes.
    """
    if not url:
        return True

    website_pattern = re.compile(
        r'^(https?://)?'  # Optional protocol
        r'([a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?\.)+'  # Domain
        r'[a-zA-Z]{2,}'  # TLD
        r'(:\d+)?'  # Optional port
        r'(/[-a-zA-Z0-9@:%_\+.~#?&//=]*)?$'  # Path
    )

    return bool(website_pattern.match(url))

def validate_email(email: str) -> bool:
    """
    Check an email-shaped account username

    Syntax only: no DNS lookup, so validation works offline and never
    leaks which services the vault holds accounts for.
    """
    if not email:
        return True

    try:
        email_validator.validate_email(email, check_deliverability=False)
        return True
    except email_validator.EmailNotValidError:
        return False

def validate_category(category: str) -> bool:
    """True if category names one of the six account categories"""
    try:
        AccountCategory(category)
        return True
    except ValueError:
        return False

def validate_account_data(account_data: Dict) -> Tuple[bool, str]:
    """
    Validate account fields before saving

    Returns:
        (is_valid, validation_message)
    """
    required_fields = ['name', 'username', 'password']
    for field in required_fields:
        value = account_data.get(field) or ''
        if not str(value).strip():
            return False, f"{field.capitalize()} required"

    name = account_data.get('name', '')
    if len(name) > MAX_NAME_LENGTH:
        return False, "Name exceeds maximum length"

    for field in ('username', 'password', 'website', 'icon'):
        if not validate_input_length(account_data.get(field)):
            return False, f"{field.capitalize()} exceeds maximum length"

    category = account_data.get('category', AccountCategory.OTHER.value)
    if isinstance(category, AccountCategory):
        category = category.value
    if not validate_category(category):
        return False, f"Unknown category: {category}"

    website = account_data.get('website') or ''
    if website and not validate_url(website):
        return False, "Invalid website URL format"

    # Email validation for username if applicable
    username = account_data.get('username', '')
    if '@' in username and '.' in username:
        if not validate_email(username):
            return False, "Invalid email format"

    return True, "Account validation passed"

def validate_backup_passphrase(passphrase: str, confirm: Optional[str] = None) -> Tuple[bool, str]:
    """
    Check a passphrase chosen for a new backup

    Returns:
        (is_valid, validation_message)
    """
    if not passphrase:
        return False, "Backup password required"

    if len(passphrase) < MIN_BACKUP_PASSPHRASE_LENGTH:
        return False, f"Minimum {MIN_BACKUP_PASSPHRASE_LENGTH} characters required"

    if confirm is not None and passphrase != confirm:
        return False, "Backup passwords do not match"

    return True, "Backup password accepted"

def validate_input_length(value, max_length: int = MAX_FIELD_LENGTH) -> bool:
    """
    Validate field length constraints

    Returns:
        True if length is within limits
    """
    if value is None:
        return True

    return len(str(value)) <= max_length
