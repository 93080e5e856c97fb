"""
MaVault User Interface Components

Display and clipboard helpers for the MaVault terminal front end:
- Tabular and detailed views of stored accounts
- A text strength meter fed by the password engine
- Clipboard copy with automatic clearing

Dependencies: pyperclip for cross-platform clipboard support
"""

import threading
import time
from datetime import datetime
from typing import List, Optional

import pyperclip

from . import config
from .models import Account
from .password_generator import analyze_password

# ==============================================================================
# ACCOUNT DISPLAY FUNCTIONS
# ==============================================================================

def _format_timestamp(millis: Optional[int]) -> str:
    if not millis:
        return ''
    try:
        return datetime.fromtimestamp(millis / 1000).strftime("%Y/%m/%d %H:%M:%S")
    except (ValueError, TypeError, OSError, OverflowError):
        return str(millis)


def mask_password(password: str) -> str:
    """
    Partially mask a password for display.

    Shows the first and last three characters; passwords of six characters
    or fewer are masked entirely.
    """
    if len(password) <= 6:
        return '*' * len(password)
    return f"{password[:3]}{'*' * (len(password) - 6)}{password[-3:]}"


def display_accounts_table(accounts: List[Account], show_password: bool = False) -> None:
    """
    Display accounts in a formatted ASCII table.

    Args:
        accounts (List[Account]): Accounts to list
        show_password (bool): Include a (truncated) password column.
                              Default: False

    Example Output:
        ID        | Name            | Username          | Category      | Created
        ---------------------------------------------------------------------------
        3f2a9c1e  | Github          | octocat           | Development   | 2026/01/15
    """
    if not accounts:
        print("[-] No accounts found")
        return

    headers = ['ID', 'Name', 'Username', 'Category', 'Created']
    if show_password:
        headers.append('Password')

    table_data = []
    for account in accounts:
        row = [
            account.id[:8],
            account.name[:30],
            account.username[:20],
            account.category.label[:15],
            _format_timestamp(account.created_at)[:10],
        ]
        if show_password:
            row.append(account.password[:20])
        table_data.append(row)

    # Column widths from the widest cell, plus padding
    col_widths = []
    for i, header in enumerate(headers):
        width = max([len(header)] + [len(str(row[i])) for row in table_data])
        col_widths.append(width + 2)

    print(' | '.join(header.ljust(col_widths[i]) for i, header in enumerate(headers)))
    print('-' * (sum(col_widths) + len(headers) * 3 - 1))

    for row in table_data:
        print(' | '.join(str(cell).ljust(col_widths[i]) for i, cell in enumerate(row)))


def display_account(account: Account, show_password: bool = False) -> None:
    """Display every field of a single account."""
    print("=" * 50)
    print(f"Account {account.id}")
    print("=" * 50)
    print(f"Name:        {account.name}")
    print(f"Username:    {account.username}")
    print(f"Website:     {account.website or ''}")
    print(f"Category:    {account.category.label}")
    if show_password:
        print(f"Password:    {account.password}")
    else:
        print(f"Password:    {mask_password(account.password)}")
    print(f"Created:     {_format_timestamp(account.created_at)}")
    print(f"Updated:     {_format_timestamp(account.updated_at)}")
    print("=" * 50)

# ==============================================================================
# STRENGTH METER
# ==============================================================================

_COLOR_MARKERS = {
    '#EF4444': '🔴',
    '#F59E0B': '🟠',
    '#10B981': '🟢',
    '#6366F1': '🔵',
}


def render_strength_meter(password: str, width: int = 20) -> str:
    """
    Render a one-line strength meter, e.g. "🟢 [###############-----] Good (52 bits)".
    """
    analysis = analyze_password(password)
    filled = int(round(width * analysis['percentage']))
    bar = '#' * filled + '-' * (width - filled)
    marker = _COLOR_MARKERS.get(analysis['color'], '⚪')
    return f"{marker} [{bar}] {analysis['label']} ({round(analysis['entropy_bits'])} bits)"


def display_password_strength(password: str) -> None:
    """Print the strength meter and the character classes a password uses."""
    analysis = analyze_password(password)

    print(f"\nPassword: {'*' * analysis['length']}")
    print(f"Length: {analysis['length']} characters")
    print(f"Strength: {render_strength_meter(password)}")
    print("Character Types:")
    print(f"  Uppercase letters: {'✓' if analysis['has_upper'] else '✗'}")
    print(f"  Lowercase letters: {'✓' if analysis['has_lower'] else '✗'}")
    print(f"  Digits: {'✓' if analysis['has_digit'] else '✗'}")
    print(f"  Symbols: {'✓' if analysis['has_symbol'] else '✗'}")

# ==============================================================================
# CLIPBOARD MANAGEMENT
# ==============================================================================

def copy_to_clipboard(text: str, timeout: int = config.CLIPBOARD_CLEAR_TIMEOUT) -> bool:
    """
    Copy text to the system clipboard, clearing it again after timeout seconds.

    The clipboard is only cleared if it still holds the copied text.
    A timeout of 0 disables clearing.

    Returns:
        bool: True if text was copied
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        print(f"[-] Clipboard error: {e}")
        return False

    if timeout > 0:
        def clear_later():
            time.sleep(timeout)
            try:
                if pyperclip.paste() == text:
                    pyperclip.copy("")
            except pyperclip.PyperclipException:
                # Clipboard went away (e.g. display closed); nothing to clear
                pass

        clear_thread = threading.Thread(target=clear_later, daemon=True)
        clear_thread.start()

    return True
