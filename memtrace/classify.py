import logging
from enum import Enum

from memtrace.errors import UnknownOpcode

logger = logging.getLogger(__name__)


class AccessClass(Enum):
    READ = "read"
    WRITE = "write"
    FETCH = "fetch"
    IGNORE = "ignore"


# gem5 MemCmd values
READ_REQ = 1
WRITE_REQ = 4
WRITEBACK_DIRTY = 6
WRITE_CLEAN = 8
CLEAN_EVICT = 9
HARD_PF_RESP = 14
UPGRADE_RESP = 19
READ_EX_REQ = 22

DEFAULT_OPCODES = {
    READ_REQ: AccessClass.READ,
    READ_EX_REQ: AccessClass.READ,
    HARD_PF_RESP: AccessClass.READ,
    WRITE_REQ: AccessClass.WRITE,
    WRITEBACK_DIRTY: AccessClass.WRITE,
    WRITE_CLEAN: AccessClass.WRITE,
    CLEAN_EVICT: AccessClass.IGNORE,
    UPGRADE_RESP: AccessClass.IGNORE,
}


class Classifier:
    """Maps simulator command codes to access classes."""

    def __init__(self, table=None):
        self.table = dict(DEFAULT_OPCODES if table is None else table)
        self.unknown_count = 0

    def register(self, opcode, access_class):
        self.table[opcode] = AccessClass(access_class)

    def lookup(self, opcode):
        try:
            return self.table[opcode]
        except KeyError:
            raise UnknownOpcode(opcode) from None

    def classify(self, opcode, fetch=False):
        """
        Classify opcode, never raising. Unknown codes are logged and ignored.
        Reads coming from an instruction-fetch stream count as fetches.
        """
        try:
            access_class = self.lookup(opcode)
        except UnknownOpcode as e:
            self.unknown_count += 1
            logger.warning(str(e))
            return AccessClass.IGNORE
        if fetch and access_class is AccessClass.READ:
            return AccessClass.FETCH
        return access_class
