"""Protocol identifiers. Adapter classes live in the per-protocol packages."""
from enum import Enum


class Protocol(str, Enum):
    LIDO = "lido"
    MENDI_FINANCE = "mendi-finance"
    IZISWAP = "iziswap"
