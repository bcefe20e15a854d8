import numpy as np

# -----------------------------
# Packed Bit Vector
# -----------------------------
WORD_BITS = 64


def words_for(nbits: int) -> int:
    return (nbits + WORD_BITS - 1) // WORD_BITS


class BitVec:
    """
    Length-tagged bit vector packed into little-endian 64-bit words.

    Bit i lives in word i // 64 at position i % 64. Bits past `nbits` in
    the last word are not cleared: they belong to the serialized value and
    must come back unchanged after a save/load cycle.

    Used for the per-edge sigma noise and for the LPN rows H of the
    public key.
    """

    __slots__ = ("nbits", "w")

    def __init__(self, nbits: int, words=None):
        if nbits < 0:
            raise ValueError("nbits must be non-negative")
        self.nbits = int(nbits)
        if words is None:
            self.w = np.zeros(words_for(self.nbits), dtype=np.uint64)
        else:
            self.w = np.array(words, dtype=np.uint64)
            if self.w.shape != (words_for(self.nbits),):
                raise ValueError(
                    f"BitVec of {self.nbits} bits needs {words_for(self.nbits)} words, got {self.w.size}"
                )

    @classmethod
    def make(cls, nbits: int) -> "BitVec":
        return cls(nbits)

    def _locate(self, i: int):
        if not 0 <= i < self.nbits:
            raise IndexError(f"Bit {i} out of range for {self.nbits}-bit vector")
        return i // WORD_BITS, np.uint64(1) << np.uint64(i % WORD_BITS)

    def get_bit(self, i: int) -> int:
        word, mask = self._locate(i)
        return int((self.w[word] & mask) != 0)

    def set_bit(self, i: int, value: int = 1):
        word, mask = self._locate(i)
        if value:
            self.w[word] |= mask
        else:
            self.w[word] &= ~mask

    def flip_bit(self, i: int):
        word, mask = self._locate(i)
        self.w[word] ^= mask

    def _masked(self) -> np.ndarray:
        # Copy with don't-care bits past nbits cleared
        out = self.w.copy()
        tail = self.nbits % WORD_BITS
        if tail and out.size:
            out[-1] &= np.uint64((1 << tail) - 1)
        return out

    def popcount(self) -> int:
        return sum(int(word).bit_count() for word in self._masked())

    def dot(self, other: "BitVec") -> int:
        """
        Inner product over GF(2): parity of the bitwise AND.

        This is the LPN sample <h, s> when `self` is a row of H and
        `other` the secret. Only the first min(nbits) bits take part.
        """
        n = min(self.nbits, other.nbits)
        a = BitVec(n, self.w[:words_for(n)])._masked()
        b = BitVec(n, other.w[:words_for(n)])._masked()
        return sum(int(word).bit_count() for word in (a & b)) & 1

    def to_hex(self) -> str:
        return ''.join(f'{int(word):016x}' for word in self.w)

    def __len__(self):
        return self.nbits

    def __eq__(self, other):
        if not isinstance(other, BitVec):
            return NotImplemented
        return self.nbits == other.nbits and np.array_equal(self.w, other.w)

    def __repr__(self):
        return f"BitVec(nbits={self.nbits}, words={self.w.size})"
