#!/usr/bin/env python3
"""
MaVault Password Manager v1.0.0
Terminal front end for the MaVault core: password generation with a live
strength rating, a local account store, and encrypted backup export/import.
"""

# ==============================================================================
# STANDARD LIBRARY IMPORTS
# ==============================================================================
import argparse
import os
import sys

# ==============================================================================
# THIRD-PARTY LIBRARY IMPORTS
# ==============================================================================
from prompt_toolkit import prompt
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.validation import Validator, ValidationError

# ==============================================================================
# CUSTOM MODULE IMPORTS
# ==============================================================================
from mavault import backup, config, crypto, password_generator, storage, ui, validation
from mavault.models import Account, AccountCategory

# ==============================================================================
# CONSTANTS
# ==============================================================================

MAIN_MENU_INTERACTIVE = f"""
{config.APP_NAME} v{config.APP_VERSION}
Here are the available commands you can use:

'add_account' (aa) - Store a new account (optionally with a generated password)
'list_accounts' (la) - Display stored accounts
'search' (s) - Filter accounts by text and/or category
'show_account' (sa) - Show one account by ID
'copy_password' (cp) - Copy an account password to the clipboard
'delete_account' (da) - Remove an account permanently (requires confirmation)
'gen_passwd' (gp) - Generate a random password
'strength' (st) - Rate the strength of a password
'export_backup' (eb) - Write an encrypted backup file
'import_backup' (ib) - Restore accounts from an encrypted backup file
'help' (h) - Show this help message
'exit' (quit, q) - Exit the program
"""

COMMAND_ALIASES = {
    'add_account': 'add_account',
    'list_accounts': 'list_accounts',
    'search': 'search',
    'show_account': 'show_account',
    'copy_password': 'copy_password',
    'delete_account': 'delete_account',
    'gen_passwd': 'gen_passwd',
    'strength': 'strength',
    'export_backup': 'export_backup',
    'import_backup': 'import_backup',
    'help': 'help',
    'exit': 'exit',
    'quit': 'exit',

    # Abbreviations
    'aa': 'add_account',
    'la': 'list_accounts',
    's': 'search',
    'sa': 'show_account',
    'cp': 'copy_password',
    'da': 'delete_account',
    'gp': 'gen_passwd',
    'st': 'strength',
    'eb': 'export_backup',
    'ib': 'import_backup',
    'h': 'help',
    'q': 'exit',
}

CATEGORY_NAMES = [category.value for category in AccountCategory]

# ==============================================================================
# VALIDATORS
# ==============================================================================

class NumberValidator(Validator):
    """Validator for numeric input fields."""

    def validate(self, document):
        text = document.text
        if text and not text.isdigit():
            raise ValidationError(message='Please enter a valid number')

# ==============================================================================
# MAIN APPLICATION CLASS
# ==============================================================================

class MaVault:
    """
    Terminal application controller.

    Owns the account store and routes commands to the password engine and
    the backup functions. All user-facing messages are printed here.
    """

    def __init__(self, store_path: str = config.DEFAULT_STORE_FILE):
        self.store = storage.JSONFileStore(store_path)
        self.accounts = storage.AccountRepository(self.store)
        self.engine = password_generator.PasswordEngine()
        self.history = InMemoryHistory()
        self.auto_suggest = AutoSuggestFromHistory()

    # ==========================================================================
    # COMMAND RESOLUTION
    # ==========================================================================

    def _resolve_command(self, command_input):
        """
        Resolve user input to a command using aliases and prefix matching.

        Returns:
            str or None: Resolved command name or None if invalid/ambiguous
        """
        if not command_input:
            return None

        command_input = command_input.strip().lower()

        if command_input in COMMAND_ALIASES:
            return COMMAND_ALIASES[command_input]

        matches = [cmd for cmd in COMMAND_ALIASES if cmd.startswith(command_input)]
        targets = {COMMAND_ALIASES[cmd] for cmd in matches}

        if len(targets) == 1:
            return targets.pop()
        elif len(targets) > 1:
            print(f"[-] Ambiguous command '{command_input}'. Could be: {', '.join(sorted(matches))}")
            return None

        print(f"[-] Unknown command: '{command_input}'")
        print("[i] Type 'help' or 'h' for available commands")
        return None

    def _format_prompt(self):
        name = os.path.basename(self.store.path)
        if name.endswith('.json'):
            name = name[:-5]
        return f"mavault@{name}/> "

    # ==========================================================================
    # PASSWORD GENERATION
    # ==========================================================================

    def generate_password(self, options=None, reveal=False, copy=True):
        """Generate a password, show its rating and copy it to the clipboard."""
        if options is None:
            length_input = prompt(
                f"Password length [{config.PASSWORD_DEFAULT_LENGTH}]: ",
                validator=NumberValidator()
            ).strip()
            length = int(length_input) if length_input else config.PASSWORD_DEFAULT_LENGTH

            valid, message = validation.validate_generation_length(length)
            if not valid:
                print(f"[-] {message}")
                return None

            options = password_generator.PasswordGenerationOptions(
                length=length,
                include_uppercase=self._confirm("Include uppercase letters? [Y/n]: "),
                include_lowercase=self._confirm("Include lowercase letters? [Y/n]: "),
                include_numbers=self._confirm("Include numbers? [Y/n]: "),
                include_symbols=self._confirm("Include symbols? [Y/n]: "),
            )

        try:
            password = self.engine.generate(options)
        except password_generator.PasswordGenerationError as e:
            print(f"[-] {e}")
            return None

        shown = password if reveal else ui.mask_password(password)
        print(f"Generated password: {shown}")
        print(f"Security rating: {ui.render_strength_meter(password)}")

        if copy and ui.copy_to_clipboard(password):
            print(f"[+] Password copied to clipboard ({config.CLIPBOARD_CLEAR_TIMEOUT} second retention)")

        return password

    def rate_password(self, password=None):
        if password is None:
            password = prompt("Password to rate: ", is_password=True)
        ui.display_password_strength(password)

    # ==========================================================================
    # ACCOUNT MANAGEMENT
    # ==========================================================================

    def add_account(self):
        """Prompt for account details and store the account."""
        name = prompt("Name: ").strip()
        username = prompt("Username/Email: ").strip()
        website = prompt("Website (optional): ").strip()
        category = prompt(
            "Category [other]: ",
            completer=WordCompleter(CATEGORY_NAMES)
        ).strip().lower() or AccountCategory.OTHER.value

        if self._confirm("Generate a password? [Y/n]: "):
            password = self.generate_password(
                password_generator.PasswordGenerationOptions(), copy=False
            )
            if password is None:
                return None
        else:
            password = prompt("Password: ", is_password=True)
            print(f"Security rating: {ui.render_strength_meter(password)}")

        data = {
            'name': name,
            'username': username,
            'password': password,
            'website': website,
            'category': category,
        }
        valid, message = validation.validate_account_data(data)
        if not valid:
            print(f"[-] {message}")
            return None

        account = Account.create(
            name=name,
            username=username,
            password=password,
            category=AccountCategory(category),
            website=website,
        )
        self.accounts.add(account)
        print(f"[+] Account stored: {account.name} ({account.id[:8]})")
        return account

    def list_accounts(self, query='', category=None, show_passwords=False):
        category = AccountCategory(category) if category else None
        ui.display_accounts_table(self.accounts.search(query, category), show_passwords)

    def search_accounts(self):
        query = prompt("Search text: ").strip()
        category = prompt(
            "Category (blank for all): ",
            completer=WordCompleter(CATEGORY_NAMES)
        ).strip().lower()
        if category and not validation.validate_category(category):
            print(f"[-] Unknown category: {category}")
            return
        self.list_accounts(query, category or None)

    def _find_account(self, account_id=None):
        if account_id is None:
            account_id = prompt("Account ID: ").strip()

        matches = [a for a in self.accounts.list() if a.id.startswith(account_id)] if account_id else []
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            print(f"[-] ID prefix '{account_id}' matches {len(matches)} accounts")
        else:
            print(f"[-] Account not found: {account_id}")
        return None

    def show_account(self, account_id=None, reveal=False):
        account = self._find_account(account_id)
        if account:
            ui.display_account(account, show_password=reveal)

    def copy_password(self, account_id=None):
        account = self._find_account(account_id)
        if account and ui.copy_to_clipboard(account.password):
            print(f"[+] Password copied to clipboard ({config.CLIPBOARD_CLEAR_TIMEOUT} second retention)")

    def delete_account(self, account_id=None, assume_yes=False):
        account = self._find_account(account_id)
        if not account:
            return False

        if not assume_yes and not self._confirm(
                f"Delete '{account.name}'? This cannot be undone [y/N]: ", default=False):
            print("Delete operation cancelled")
            return False

        self.accounts.delete(account.id)
        print(f"[+] Account deleted: {account.name}")
        return True

    # ==========================================================================
    # BACKUP EXPORT/IMPORT
    # ==========================================================================

    def export_backup(self, backup_path, backup_password, confirm_password=None,
                      version=config.DEFAULT_ENVELOPE_VERSION):
        """
        Write an encrypted backup of every stored account.

        Returns:
            bool: True if export succeeded
        """
        valid, message = validation.validate_backup_passphrase(backup_password, confirm_password)
        if not valid:
            print(f"[-] {message}")
            return False

        print(f"Backup file: {backup_path}")
        print("[+] Deriving encryption key...")

        try:
            envelope = backup.export_backup(
                self.store, backup_password, backup_path,
                crypto=crypto.BackupCrypto(version=version)
            )
        except (storage.StorageError, crypto.BackupError, OSError) as e:
            print(f"[-] Export failed: {e}")
            return False

        count = len(self.accounts.list())
        print(f"[+] Backup written: {backup_path} ({count} account(s), format {envelope.version})")
        print(f"[i] Backup size: {os.path.getsize(backup_path) / 1024:.1f} KB")
        print("[i] Store backup password securely")
        return True

    def import_backup(self, backup_path, backup_password, merge=False):
        """
        Restore accounts from an encrypted backup file.

        Returns:
            bool: True if import succeeded
        """
        print(f"Backup source: {backup_path}")

        if not os.path.exists(backup_path):
            print("[-] Backup file not found")
            return False

        try:
            restored = backup.import_backup(self.store, backup_password, backup_path, merge=merge)
        except crypto.MalformedEnvelope as e:
            print(f"[-] Not a valid backup file: {e}")
            return False
        except crypto.UnsupportedVersion as e:
            print(f"[-] {e}")
            return False
        except crypto.DecryptionFailed as e:
            print(f"[-] {e}")
            return False
        except crypto.CorruptBackup as e:
            print(f"[-] Backup content is corrupted: {e}")
            return False
        except storage.StorageError as e:
            print(f"[-] Could not write restored accounts: {e}")
            return False

        mode = "merged into" if merge else "restored to"
        print(f"[+] {len(restored)} account(s) {mode} {self.store.path}")
        return True

    # ==========================================================================
    # INTERACTIVE SHELL
    # ==========================================================================

    def _confirm(self, message, default=True):
        answer = prompt(message).strip().lower()
        if not answer:
            return default
        return answer in ('y', 'yes')

    def run_shell(self):
        print(MAIN_MENU_INTERACTIVE)

        while True:
            try:
                selection = prompt(
                    self._format_prompt(),
                    history=self.history,
                    auto_suggest=self.auto_suggest,
                    completer=WordCompleter(list(COMMAND_ALIASES))
                ).strip()
            except EOFError:
                break

            if selection == "":
                continue

            command = self._resolve_command(selection)
            if not command:
                continue

            if command == 'exit':
                break

            try:
                self._dispatch(command)
            except storage.StorageError as e:
                print(f"[-] Storage error: {e}")

    def _dispatch(self, command):
        if command == 'help':
            print(MAIN_MENU_INTERACTIVE)
        elif command == 'add_account':
            self.add_account()
        elif command == 'list_accounts':
            self.list_accounts()
        elif command == 'search':
            self.search_accounts()
        elif command == 'show_account':
            self.show_account(reveal=self._confirm("Reveal password? [y/N]: ", default=False))
        elif command == 'copy_password':
            self.copy_password()
        elif command == 'delete_account':
            self.delete_account()
        elif command == 'gen_passwd':
            self.generate_password()
        elif command == 'strength':
            self.rate_password()
        elif command == 'export_backup':
            backup_path = prompt("Backup path: ").strip() or f"mavault_backup{config.BACKUP_FILE_EXTENSION}"
            backup_password = prompt("Backup password: ", is_password=True)
            confirm_password = prompt("Confirm backup password: ", is_password=True)
            self.export_backup(backup_path, backup_password, confirm_password)
        elif command == 'import_backup':
            backup_path = prompt("Backup path: ").strip()
            backup_password = prompt("Backup password: ", is_password=True)
            merge = self._confirm("Merge with existing accounts? [y/N]: ", default=False)
            self.import_backup(backup_path, backup_password, merge=merge)

# ==============================================================================
# MAIN ENTRY POINT
# ==============================================================================

def build_parser():
    parser = argparse.ArgumentParser(
        description="MaVault keeps credentials in a local store, generates random passwords with a strength rating, and writes and restores passphrase-encrypted backups.",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        '--store',
        default=config.DEFAULT_STORE_FILE,
        help=f'Account store file (default: {config.DEFAULT_STORE_FILE})'
    )
    subparsers = parser.add_subparsers(dest='command', help='Available operations')

    gen_parser = subparsers.add_parser('generate', help='Generate a random password')
    gen_parser.add_argument(
        '--length',
        type=int,
        default=config.PASSWORD_DEFAULT_LENGTH,
        help=f'Password length (default: {config.PASSWORD_DEFAULT_LENGTH})'
    )
    gen_parser.add_argument('--no-uppercase', action='store_true', help='Exclude uppercase letters')
    gen_parser.add_argument('--no-lowercase', action='store_true', help='Exclude lowercase letters')
    gen_parser.add_argument('--no-numbers', action='store_true', help='Exclude digits')
    gen_parser.add_argument('--no-symbols', action='store_true', help='Exclude symbols')
    gen_parser.add_argument(
        '--reveal',
        action='store_true',
        help='Show the full generated password (default: partially masked)'
    )
    gen_parser.add_argument('--no-copy', action='store_true', help='Do not copy to the clipboard')

    subparsers.add_parser('strength', help='Rate the strength of a password')
    subparsers.add_parser('add', help='Store a new account')

    list_parser = subparsers.add_parser('list', help='List stored accounts')
    list_parser.add_argument('--query', default='', help='Filter by name, username or website')
    list_parser.add_argument('--category', choices=CATEGORY_NAMES, help='Filter by category')
    list_parser.add_argument('--show-passwords', action='store_true', help='Include passwords')

    delete_parser = subparsers.add_parser('delete', help='Delete an account')
    delete_parser.add_argument('--id', required=True, help='Account ID (or unique prefix)')
    delete_parser.add_argument('--yes', action='store_true', help='Skip confirmation')

    export_parser = subparsers.add_parser('export', help='Create an encrypted backup')
    export_parser.add_argument(
        '--backup-path',
        default=f'mavault_backup{config.BACKUP_FILE_EXTENSION}',
        help='Backup destination path'
    )
    export_parser.add_argument('--password', help='Backup encryption password')
    export_parser.add_argument('--confirm-password', help='Backup password confirmation')
    export_parser.add_argument(
        '--legacy',
        action='store_true',
        help=f'Write the unauthenticated {config.LEGACY_ENVELOPE_VERSION} format for older clients'
    )

    import_parser = subparsers.add_parser('import', help='Restore accounts from a backup')
    import_parser.add_argument('--backup-path', required=True, help='Backup file path')
    import_parser.add_argument('--password', help='Backup decryption password')
    import_parser.add_argument('--merge', action='store_true', help='Keep accounts missing from the backup')

    subparsers.add_parser('shell', help='Interactive session')

    return parser


def main(argv=None):
    """Main entry point for MaVault."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    app = MaVault(args.store)
    succeeded = True

    try:
        if args.command == 'generate':
            options = password_generator.PasswordGenerationOptions(
                length=args.length,
                include_uppercase=not args.no_uppercase,
                include_lowercase=not args.no_lowercase,
                include_numbers=not args.no_numbers,
                include_symbols=not args.no_symbols,
            )
            valid, message = validation.validate_generation_length(args.length)
            if not valid:
                print(f"[-] {message}")
                return 1
            succeeded = app.generate_password(options, reveal=args.reveal, copy=not args.no_copy) is not None

        elif args.command == 'strength':
            app.rate_password()

        elif args.command == 'add':
            succeeded = app.add_account() is not None

        elif args.command == 'list':
            app.list_accounts(args.query, args.category, args.show_passwords)

        elif args.command == 'delete':
            succeeded = app.delete_account(args.id, assume_yes=args.yes)

        elif args.command == 'export':
            if args.password:
                backup_password = args.password
                confirm_password = args.confirm_password
            else:
                backup_password = prompt("Backup password: ", is_password=True)
                confirm_password = prompt("Confirm backup password: ", is_password=True)

            version = config.LEGACY_ENVELOPE_VERSION if args.legacy else config.DEFAULT_ENVELOPE_VERSION
            succeeded = app.export_backup(args.backup_path, backup_password, confirm_password, version)

        elif args.command == 'import':
            backup_password = args.password or prompt("Backup password: ", is_password=True)
            succeeded = app.import_backup(args.backup_path, backup_password, merge=args.merge)

        elif args.command == 'shell':
            app.run_shell()

    except KeyboardInterrupt:
        print("\n[-] Operation terminated.")
        return 130
    except storage.StorageError as e:
        print(f"[-] Storage error: {e}")
        return 1

    return 0 if succeeded else 1


if __name__ == "__main__":
    sys.exit(main())
