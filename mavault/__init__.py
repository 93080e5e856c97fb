"""
MaVault Modules
"""

from .random_source import *
from .password_generator import *
from .crypto import *
from .models import *
from .storage import *
from .backup import *
from .validation import *
from .ui import *
