from dataclasses import dataclass

from pvac.utils.errors import (DomainError)

# -----------------------------
# Prime Field Fp, p = 2^127 - 1
# -----------------------------
P = (1 << 127) - 1
MASK64 = (1 << 64) - 1


@dataclass(frozen=True)
class Fp:
    """
    Element of the prime field used by every PVAC computation.

    Stored as two unsigned 64-bit limbs (value = hi * 2^64 + lo), which is
    also the wire layout. Arithmetic always returns canonical values in
    [0, p); limbs read from a file are kept as read so that re-encoding
    reproduces the original bytes.

    Cryptographic principles:
    - Mersenne prime modulus: reduction is a fold of the high bits
    - Exact integer arithmetic: no rounding anywhere in the scheme
    """
    lo: int = 0
    hi: int = 0

    def __post_init__(self):
        if not (0 <= self.lo <= MASK64 and 0 <= self.hi <= MASK64):
            raise ValueError("Fp limbs must be unsigned 64-bit integers")

    @classmethod
    def from_int(cls, value: int) -> "Fp":
        value = _reduce(value)
        return cls(value & MASK64, value >> 64)

    @classmethod
    def from_limbs(cls, lo: int, hi: int) -> "Fp":
        return cls(lo, hi)

    def __int__(self) -> int:
        return _reduce((self.hi << 64) | self.lo)

    def is_zero(self) -> bool:
        return int(self) == 0

    def add(self, other: "Fp") -> "Fp":
        return Fp.from_int(int(self) + int(other))

    def sub(self, other: "Fp") -> "Fp":
        return Fp.from_int(int(self) - int(other))

    def mul(self, other: "Fp") -> "Fp":
        return Fp.from_int(int(self) * int(other))

    def neg(self) -> "Fp":
        return Fp.from_int(-int(self))

    def inv(self) -> "Fp":
        return Fp.from_int(modinv(int(self), P))

    def equals(self, other: "Fp") -> bool:
        return int(self) == int(other)

    def __eq__(self, other):
        if not isinstance(other, Fp):
            return NotImplemented
        return self.equals(other)

    def __hash__(self):
        return hash(int(self))

    __add__ = add
    __sub__ = sub
    __mul__ = mul
    __neg__ = neg

    def __truediv__(self, other: "Fp") -> "Fp":
        return self.mul(other.inv())

    def to_hex(self) -> str:
        return f"0x{self.hi:016x}{self.lo:016x}"

    def __str__(self):
        return f"Fp(lo={self.lo}, hi={self.hi})"


def _reduce(value: int) -> int:
    # Fold while the value is large, then settle sign and the final subtraction with %.
    while value >> 127:
        value = (value & P) + (value >> 127)
    return value % P


def modinv(a: int, m: int) -> int:
    """
    Compute modular multiplicative inverse using Extended Euclidean Algorithm.

    Args:
        a: Element to invert
        m: Modulus

    Returns:
        x with a*x = 1 (mod m)

    Raises:
        DomainError: If a has no inverse (a = 0 in the field)
    """
    def egcd(aa: int, bb: int):
        if aa == 0:
            return bb, 0, 1
        g, x1, y1 = egcd(bb % aa, aa)
        return g, y1 - (bb // aa) * x1, x1
    a %= m
    if a == 0:
        raise DomainError("Zero has no multiplicative inverse")
    g, x, _ = egcd(a, m)
    if g != 1:
        raise DomainError("Modular inverse does not exist")
    return x % m

# -----------------------------
# Functional spelling
# -----------------------------
def fp_from_u64(value: int) -> Fp:
    if not 0 <= value <= MASK64:
        raise ValueError("Value does not fit in 64 bits")
    return Fp.from_int(value)

def fp_add(a: Fp, b: Fp) -> Fp:
    return a.add(b)

def fp_sub(a: Fp, b: Fp) -> Fp:
    return a.sub(b)

def fp_mul(a: Fp, b: Fp) -> Fp:
    return a.mul(b)

def fp_inv(a: Fp) -> Fp:
    return a.inv()

def fp_eq(a: Fp, b: Fp) -> bool:
    return a.equals(b)

FP_ZERO = Fp(0, 0)
FP_ONE = Fp(1, 0)
