"""
Password Generation Module for MaVault

This module provides random password generation and entropy-based strength
scoring. It implements:
- Class-constrained random passwords (uppercase, lowercase, digits, symbols)
- Guaranteed coverage of every selected character class
- Entropy estimation from the character classes a password actually uses
- A four-tier strength rating for live strength meters

SECURITY NOTES:
- Every draw and the final shuffle go through a SecureRandomSource; the
  default source is the operating system CSPRNG
- The guaranteed-class characters are shuffled into random positions so they
  are never predictably at the front
- Entropy scoring assumes uniformly random characters, so it overrates
  human-chosen passwords built from words or patterns
"""

import math
import re
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Dict, List, Optional

from . import config
from .random_source import SecureRandomSource, default_random_source

# ==============================================================================
# CUSTOM EXCEPTION CLASSES
# ==============================================================================

class PasswordGenerationError(Exception):
    """
    Base class for password generation errors.

    Raised when password generation fails due to invalid parameters or
    constraints that cannot be satisfied.
    """
    pass


class InvalidOptions(PasswordGenerationError):
    """Generation options cannot produce a password (e.g. no class selected)."""
    pass

# ==============================================================================
# DATA TYPES
# ==============================================================================

@total_ordering
class PasswordStrength(Enum):
    """Strength tiers, ordered weak < fair < good < strong."""

    WEAK = "weak"
    FAIR = "fair"
    GOOD = "good"
    STRONG = "strong"

    @property
    def rank(self) -> int:
        return _STRENGTH_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, PasswordStrength):
            return NotImplemented
        return self.rank < other.rank


_STRENGTH_ORDER = [
    PasswordStrength.WEAK,
    PasswordStrength.FAIR,
    PasswordStrength.GOOD,
    PasswordStrength.STRONG,
]

# Display configuration for strength meters
STRENGTH_DISPLAY = {
    PasswordStrength.WEAK: {'label': 'Weak', 'color': '#EF4444', 'percentage': 0.25},
    PasswordStrength.FAIR: {'label': 'Fair', 'color': '#F59E0B', 'percentage': 0.5},
    PasswordStrength.GOOD: {'label': 'Good', 'color': '#10B981', 'percentage': 0.75},
    PasswordStrength.STRONG: {'label': 'Strong', 'color': '#6366F1', 'percentage': 1.0},
}


class ShortLengthPolicy(Enum):
    """
    What generate() does when length is below the number of selected classes.

    REJECT raises InvalidOptions. TRUNCATE keeps `length` of the guaranteed
    characters and gives up full coverage. CLAMP raises the length to the
    number of selected classes and keeps full coverage.
    """

    REJECT = "reject"
    TRUNCATE = "truncate"
    CLAMP = "clamp"


@dataclass
class PasswordGenerationOptions:
    """
    Options for a single generation request.

    The object may be built with every class disabled; generate() rejects it.
    """

    length: int = config.PASSWORD_DEFAULT_LENGTH
    include_uppercase: bool = True
    include_lowercase: bool = True
    include_numbers: bool = True
    include_symbols: bool = True

    def selected_classes(self) -> List[str]:
        """Alphabets of the enabled classes, in a fixed order."""
        classes = []
        if self.include_uppercase:
            classes.append(config.UPPERCASE_CHARS)
        if self.include_lowercase:
            classes.append(config.LOWERCASE_CHARS)
        if self.include_numbers:
            classes.append(config.DIGIT_CHARS)
        if self.include_symbols:
            classes.append(config.SYMBOL_CHARS)
        return classes

    @property
    def class_count(self) -> int:
        return len(self.selected_classes())

# ==============================================================================
# PASSWORD ENGINE
# ==============================================================================

class PasswordEngine:
    """
    Generates passwords and scores their strength.

    The engine keeps no state between calls. Any caller may build its own
    instance; tests inject a DeterministicRandomSource.
    """

    def __init__(self,
                 random_source: Optional[SecureRandomSource] = None,
                 short_length_policy: ShortLengthPolicy = ShortLengthPolicy.REJECT):
        self.random_source = random_source or default_random_source()
        self.short_length_policy = short_length_policy

    def generate(self, options: PasswordGenerationOptions) -> str:
        """
        Generate a random password honouring the selected character classes.

        Steps:
        1. Build the candidate pool from every selected class alphabet
        2. Draw one character from each selected class
        3. Fill the remaining positions uniformly from the full pool
        4. Shuffle the whole sequence (Fisher-Yates)

        Args:
            options (PasswordGenerationOptions): Length and class flags

        Returns:
            str: Password of exactly options.length characters, or of
                 exactly the number of selected classes under CLAMP when
                 the requested length is shorter.

        Raises:
            InvalidOptions: No class selected, length below 1, or length below
                            the number of selected classes under REJECT.

        Examples:
            >>> engine = PasswordEngine()
            >>> engine.generate(PasswordGenerationOptions(length=12))
            'q8#Lp@2xT!zM'
        """
        classes = options.selected_classes()
        if not classes:
            raise InvalidOptions("At least one character type must be selected")

        length = options.length
        if not isinstance(length, int) or isinstance(length, bool) or length < 1:
            raise InvalidOptions(f"Password length must be a positive integer, got {length!r}")

        rng = self.random_source

        # One guaranteed character per selected class
        required = [rng.choice(alphabet) for alphabet in classes]

        if length < len(required):
            if self.short_length_policy is ShortLengthPolicy.REJECT:
                raise InvalidOptions(
                    f"Password length {length} is shorter than the "
                    f"{len(required)} selected character types"
                )
            if self.short_length_policy is ShortLengthPolicy.TRUNCATE:
                rng.shuffle(required)
                return ''.join(required[:length])
            length = len(required)

        pool = ''.join(classes)
        password_chars = required + [rng.choice(pool) for _ in range(length - len(required))]

        rng.shuffle(password_chars)
        return ''.join(password_chars)

    def calculate_entropy(self, password: str) -> float:
        return calculate_entropy(password)

    def estimate_strength(self, password: str) -> PasswordStrength:
        return estimate_strength(password)

# ==============================================================================
# STRENGTH SCORING
# ==============================================================================

def _pool_size(password: str) -> int:
    pool = 0
    if re.search(r'[a-z]', password):
        pool += config.POOL_SIZE_LOWERCASE
    if re.search(r'[A-Z]', password):
        pool += config.POOL_SIZE_UPPERCASE
    if re.search(r'[0-9]', password):
        pool += config.POOL_SIZE_DIGITS
    if re.search(r'[^a-zA-Z0-9]', password):
        pool += config.POOL_SIZE_SYMBOLS
    return pool


def calculate_entropy(password: str) -> float:
    """
    Estimate password entropy in bits.

    Computes len(password) * log2(pool), where the pool is the sum of the
    sizes of the character classes observed in the password: 26 for
    lowercase, 26 for uppercase, 10 for digits and 32 for anything else.

    Returns:
        float: Entropy in bits; 0.0 for an empty password
    """
    if not password:
        return 0.0

    # A non-empty string always matches some class; 1 keeps log2 defined
    pool = _pool_size(password) or 1
    return len(password) * math.log2(pool)


def strength_for_entropy(bits: float) -> PasswordStrength:
    """Map an entropy value onto a strength tier."""
    if bits < config.STRENGTH_THRESHOLD_FAIR:
        return PasswordStrength.WEAK
    if bits < config.STRENGTH_THRESHOLD_GOOD:
        return PasswordStrength.FAIR
    if bits < config.STRENGTH_THRESHOLD_STRONG:
        return PasswordStrength.GOOD
    return PasswordStrength.STRONG


def estimate_strength(password: str) -> PasswordStrength:
    """Rate a password: weak (<28 bits), fair (<36), good (<60), strong."""
    return strength_for_entropy(calculate_entropy(password))


def analyze_password(password: str) -> Dict:
    """
    Strength analysis for display in a strength meter.

    Args:
        password (str): Password to analyze

    Returns:
        dict: Dictionary with keys:
            - 'length': Password length
            - 'entropy_bits': Entropy estimate in bits
            - 'strength': PasswordStrength tier
            - 'label': Display label ("Weak" .. "Strong")
            - 'color': Display color (hex)
            - 'percentage': Meter fill between 0.25 and 1.0
            - 'has_upper', 'has_lower', 'has_digit', 'has_symbol': Class flags
    """
    entropy = calculate_entropy(password)
    strength = strength_for_entropy(entropy)
    display = STRENGTH_DISPLAY[strength]

    return {
        'length': len(password),
        'entropy_bits': entropy,
        'strength': strength,
        'label': display['label'],
        'color': display['color'],
        'percentage': display['percentage'],
        'has_upper': bool(re.search(r'[A-Z]', password)),
        'has_lower': bool(re.search(r'[a-z]', password)),
        'has_digit': bool(re.search(r'[0-9]', password)),
        'has_symbol': bool(re.search(r'[^A-Za-z0-9]', password)),
    }
