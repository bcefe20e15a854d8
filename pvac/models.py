import struct
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Optional, Union
import numpy as np

from pvac.utils.field import Fp
from pvac.utils.bitvec import BitVec
from pvac.utils.errors import (PvacError, FormatError, DomainError)

# -----------------------------
# CLI Colors
# -----------------------------
class bcolors:
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKCYAN = '\033[96m'
    OKGREEN = '\033[92m'
    GREY = '\033[90m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'
    UNDERLINE = '\033[4m'

# -----------------------------
# File Format Signatures
# -----------------------------
MAGIC_CT = 0x66699666
MAGIC_SK = 0x66666999
MAGIC_PK = 0x06660666
VERSION = 1

H_DIGEST_LEN = 32
PRF_KEY_WORDS = 4

# Edge sign channels
SGN_P = 0
SGN_M = 1

# -----------------------------
# Key Parameters
# -----------------------------
@dataclass
class Params:
    """
    LPN and noise configuration carried in every public key.

    The values are produced by the external key generator and only carried
    through here. `tuple2_bits` is the raw IEEE-754 pattern of a double, so
    NaN payloads and the sign of zero round-trip and compare exactly;
    `tuple2_fraction` decodes it.
    """
    m_bits: int = 0
    B: int = 0
    lpn_t: int = 0
    lpn_n: int = 0
    lpn_tau_num: int = 0
    lpn_tau_den: int = 0
    noise_entropy_bits: int = 0
    depth_slope_bits: int = 0
    tuple2_bits: int = 0
    edge_budget: int = 0

    @property
    def tuple2_fraction(self) -> float:
        return double_from_bits(self.tuple2_bits)


def double_to_bits(x: float) -> int:
    return struct.unpack("<Q", struct.pack("<d", x))[0]

def double_from_bits(bits: int) -> float:
    return struct.unpack("<d", struct.pack("<Q", bits))[0]

# -----------------------------
# Layers
# -----------------------------
class RRule(IntEnum):
    BASE = 0
    PROD = 1


@dataclass(frozen=True)
class Nonce:
    lo: int = 0
    hi: int = 0


@dataclass(frozen=True)
class Seed:
    """Per-layer PRF input. The secret R of a BASE layer is prf_R(sk, seed)."""
    ztag: int = 0
    nonce: Nonce = field(default_factory=Nonce)


@dataclass(frozen=True)
class BaseLayer:
    seed: Seed = field(default_factory=Seed)

    @property
    def rule(self) -> int:
        return RRule.BASE


@dataclass(frozen=True)
class ProdLayer:
    pa: int = 0
    pb: int = 0

    @property
    def rule(self) -> int:
        return RRule.PROD


@dataclass(frozen=True)
class OpaqueLayer:
    """
    Layer with a rule byte this toolkit does not interpret.

    The three reserved 64-bit words are kept as read and written back
    unchanged, so unknown rules survive a decode/encode cycle and the
    stream stays aligned.
    """
    rule: int
    payload: tuple = (0, 0, 0)

    def __post_init__(self):
        if self.rule in (RRule.BASE, RRule.PROD):
            raise ValueError(f"Rule {self.rule} is not opaque")
        if len(self.payload) != 3:
            raise ValueError("Opaque layer payload must hold three words")


Layer = Union[BaseLayer, ProdLayer, OpaqueLayer]

# -----------------------------
# Edges and Ciphers
# -----------------------------
@dataclass
class Edge:
    """
    Signed, weighted reference from the public ciphertext into a layer.

    `idx` selects the public coefficient powg_B[idx]; `ch` is SGN_P or
    SGN_M; `s` carries the per-edge noise bits (sigma).
    """
    layer_id: int
    idx: int
    ch: int
    w: Fp
    s: BitVec = field(default_factory=lambda: BitVec.make(0))


@dataclass
class Cipher:
    L: list = field(default_factory=list)  # Layer DAG
    E: list = field(default_factory=list)  # Edge list

# -----------------------------
# Keys
# -----------------------------
@dataclass
class UnblindKey:
    """A permutation of [0, n) together with its inverse."""
    perm: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint32))
    inv: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint32))

    def __post_init__(self):
        self.perm = np.asarray(self.perm, dtype=np.uint32)
        self.inv = np.asarray(self.inv, dtype=np.uint32)

    def __eq__(self, other):
        if not isinstance(other, UnblindKey):
            return NotImplemented
        return np.array_equal(self.perm, other.perm) and np.array_equal(self.inv, other.inv)

    def is_consistent(self) -> bool:
        n = len(self.perm)
        if len(self.inv) != n:
            return False
        if n == 0:
            return True
        if self.perm.max() >= n or self.inv.max() >= n:
            return False
        return bool(np.array_equal(self.inv[self.perm], np.arange(n, dtype=np.uint32)))


@dataclass
class PubKey:
    prm: Params = field(default_factory=Params)
    canon_tag: int = 0
    H_digest: bytes = bytes(H_DIGEST_LEN)
    H: list = field(default_factory=list)          # list[BitVec]
    ubk: UnblindKey = field(default_factory=UnblindKey)
    omega_B: Fp = field(default_factory=lambda: Fp.from_int(0))
    powg_B: list = field(default_factory=list)     # list[Fp]


@dataclass
class SecKey:
    """Opaque secret material. Serialized here, interpreted only by the scheme backend."""
    prf_k: tuple = (0, 0, 0, 0)
    lpn_s_bits: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.uint64))

    def __post_init__(self):
        self.prf_k = tuple(int(k) for k in self.prf_k)
        if len(self.prf_k) != PRF_KEY_WORDS:
            raise ValueError(f"prf_k must hold {PRF_KEY_WORDS} words")
        self.lpn_s_bits = np.asarray(self.lpn_s_bits, dtype=np.uint64)

    def __eq__(self, other):
        if not isinstance(other, SecKey):
            return NotImplemented
        return self.prf_k == other.prf_k and np.array_equal(self.lpn_s_bits, other.lpn_s_bits)

# -----------------------------
# Analyzer Configuration
# -----------------------------
class SeedMatch(Enum):
    """
    How BASE-layer seeds are compared by the ratio analyzer.

    LOOSE compares ztag and nonce.lo only, the classic check for this
    attack. STRICT also requires nonce.hi to agree.
    """
    LOOSE = "loose"
    STRICT = "strict"


@dataclass(frozen=True)
class AnalyzerConfig:
    seed_match: SeedMatch = SeedMatch.LOOSE
    preview_edges: int = 5  # Edges shown by `inspect`


@dataclass
class RatioReport:
    """
    Outcome of the shared-randomness ratio attack.

    `ratio` is A.E[0].w / B.E[0].w when every compared seed matched and
    None otherwise. It is only meaningful as a ratio of the two encoded
    values; it never reveals either value on its own.
    """
    seeds_match: bool
    layer_matches: list
    ratio: Optional[Fp] = None

    @property
    def applicable(self) -> bool:
        return self.ratio is not None

