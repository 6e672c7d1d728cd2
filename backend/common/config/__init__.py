"""Configuration module - re-exports all config values."""
from .paths import *
from .database import *
from .sensor import *
from .weather import *
from .camera import *
from .detector import *
from .metrics import *
