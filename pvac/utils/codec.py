import struct
import numpy as np

from pvac.models import (
    MAGIC_CT, MAGIC_PK, MAGIC_SK, VERSION, H_DIGEST_LEN, PRF_KEY_WORDS,
    RRule, Nonce, Seed, BaseLayer, ProdLayer, OpaqueLayer, Edge, Cipher,
    Params, UnblindKey, PubKey, SecKey, FormatError, Fp, BitVec
)
from pvac.utils.bitvec import (words_for)

# -----------------------------
# Wire Primitives
# -----------------------------
U8 = struct.Struct("<B")
U16 = struct.Struct("<H")
U32 = struct.Struct("<I")
U64 = struct.Struct("<Q")
HEADER = struct.Struct("<II")

# Smallest encoded size of each variable-length element, used to reject
# counts that cannot fit in what is left of the stream.
MIN_BITVEC_SIZE = U32.size
MIN_LAYER_SIZE = U8.size + 2 * U32.size
MIN_EDGE_SIZE = U32.size + U16.size + 2 * U8.size + 2 * U64.size + MIN_BITVEC_SIZE
MIN_CIPHER_SIZE = 2 * U32.size
FP_SIZE = 2 * U64.size


class Reader:
    """
    Sequential little-endian reader over an in-memory record.

    Every read checks the remaining length first, so a truncated stream
    raises FormatError instead of yielding zero-filled fields.
    """

    def __init__(self, data: bytes, what: str = "record"):
        self.buf = memoryview(bytes(data))
        self.pos = 0
        self.what = what

    @property
    def remaining(self) -> int:
        return len(self.buf) - self.pos

    def take(self, n: int) -> memoryview:
        if n < 0 or n > self.remaining:
            raise FormatError(
                f"Truncated {self.what}: needed {n} bytes at offset {self.pos}, {self.remaining} left"
            )
        chunk = self.buf[self.pos:self.pos + n]
        self.pos += n
        return chunk

    def unpack(self, st: struct.Struct):
        return st.unpack(self.take(st.size))[0]

    def u8(self) -> int:
        return self.unpack(U8)

    def u16(self) -> int:
        return self.unpack(U16)

    def u32(self) -> int:
        return self.unpack(U32)

    def u64(self) -> int:
        return self.unpack(U64)

    def raw(self, n: int) -> bytes:
        return bytes(self.take(n))

    def count(self, element_size: int, field_name: str) -> int:
        """Read a u64 element count and make sure that many elements can still fit."""
        n = self.u64()
        self.check_fits(n, element_size, field_name)
        return n

    def check_fits(self, n: int, element_size: int, field_name: str):
        if n * element_size > self.remaining:
            raise FormatError(
                f"Truncated {self.what}: {field_name} declares {n} elements, "
                f"only {self.remaining} bytes left"
            )

    def array(self, n: int, dtype: str) -> np.ndarray:
        itemsize = np.dtype(dtype).itemsize
        return np.frombuffer(self.take(n * itemsize), dtype=dtype).copy()

    def expect_header(self, magic: int):
        got_magic, got_version = HEADER.unpack(self.take(HEADER.size))
        if got_magic != magic:
            raise FormatError(f"Bad {self.what} magic: 0x{got_magic:08x} (expected 0x{magic:08x})")
        if got_version != VERSION:
            raise FormatError(f"Unsupported {self.what} version: {got_version} (expected {VERSION})")


class Writer:
    def __init__(self):
        self.buf = bytearray()

    def pack(self, st: struct.Struct, value):
        try:
            self.buf += st.pack(value)
        except struct.error as e:
            raise ValueError(f"Value {value!r} does not fit field format {st.format}: {e}") from e

    def u8(self, x: int):
        self.pack(U8, x)

    def u16(self, x: int):
        self.pack(U16, x)

    def u32(self, x: int):
        self.pack(U32, x)

    def u64(self, x: int):
        self.pack(U64, x)

    def raw(self, data: bytes):
        self.buf += data

    def array(self, values, dtype: str):
        arr = np.asarray(values)
        target = np.dtype(dtype)
        if arr.size and not np.can_cast(arr.dtype, target):
            if arr.dtype.kind not in "iuO":
                raise ValueError(f"Array of {arr.dtype} cannot be written as {target}")
            info = np.iinfo(target)
            lo, hi = int(arr.min()), int(arr.max())
            if lo < info.min or hi > info.max:
                raise ValueError(f"Array values [{lo}, {hi}] do not fit {target}")
        self.buf += arr.astype(target).tobytes()

    def header(self, magic: int):
        self.buf += HEADER.pack(magic, VERSION)

    def getvalue(self) -> bytes:
        return bytes(self.buf)

# -----------------------------
# Field Elements and Bit Vectors
# -----------------------------
def read_fp(r: Reader) -> Fp:
    lo = r.u64()
    hi = r.u64()
    return Fp.from_limbs(lo, hi)

def write_fp(w: Writer, f: Fp):
    w.u64(f.lo)
    w.u64(f.hi)

def read_bitvec(r: Reader) -> BitVec:
    nbits = r.u32()
    nwords = words_for(nbits)
    r.check_fits(nwords, U64.size, "bit vector")
    return BitVec(nbits, r.array(nwords, "<u8"))

def write_bitvec(w: Writer, b: BitVec):
    w.u32(b.nbits)
    w.array(b.w, "<u8")

# -----------------------------
# Layers, Edges, Ciphers
# -----------------------------
def read_layer(r: Reader):
    """
    Decode one layer.

    BASE carries a seed (ztag, nonce.lo, nonce.hi); PROD carries two layer
    indices; any other rule byte is followed by three reserved words that
    are consumed to keep the stream aligned.
    """
    rule = r.u8()
    if rule == RRule.BASE:
        ztag = r.u64()
        lo = r.u64()
        hi = r.u64()
        return BaseLayer(Seed(ztag, Nonce(lo, hi)))
    if rule == RRule.PROD:
        pa = r.u32()
        pb = r.u32()
        return ProdLayer(pa, pb)
    payload = (r.u64(), r.u64(), r.u64())
    return OpaqueLayer(rule, payload)

def write_layer(w: Writer, layer):
    w.u8(int(layer.rule))
    if isinstance(layer, BaseLayer):
        w.u64(layer.seed.ztag)
        w.u64(layer.seed.nonce.lo)
        w.u64(layer.seed.nonce.hi)
    elif isinstance(layer, ProdLayer):
        w.u32(layer.pa)
        w.u32(layer.pb)
    elif isinstance(layer, OpaqueLayer):
        for word in layer.payload:
            w.u64(word)
    else:
        raise TypeError(f"Not a layer: {layer!r}")

def read_edge(r: Reader) -> Edge:
    layer_id = r.u32()
    idx = r.u16()
    ch = r.u8()
    r.u8()  # pad
    wt = read_fp(r)
    s = read_bitvec(r)
    return Edge(layer_id, idx, ch, wt, s)

def write_edge(w: Writer, e: Edge):
    w.u32(e.layer_id)
    w.u16(e.idx)
    w.u8(e.ch)
    w.u8(0)
    write_fp(w, e.w)
    write_bitvec(w, e.s)

def read_cipher(r: Reader) -> Cipher:
    n_layers = r.u32()
    n_edges = r.u32()
    r.check_fits(n_layers, MIN_LAYER_SIZE, "layer list")
    layers = [read_layer(r) for _ in range(n_layers)]
    r.check_fits(n_edges, MIN_EDGE_SIZE, "edge list")
    edges = [read_edge(r) for _ in range(n_edges)]
    return Cipher(layers, edges)

def write_cipher(w: Writer, c: Cipher):
    w.u32(len(c.L))
    w.u32(len(c.E))
    for layer in c.L:
        write_layer(w, layer)
    for e in c.E:
        write_edge(w, e)

# -----------------------------
# Files: Ciphertexts
# -----------------------------
def encode_ciphers(ciphers: list) -> bytes:
    w = Writer()
    w.header(MAGIC_CT)
    w.u64(len(ciphers))
    for c in ciphers:
        write_cipher(w, c)
    return w.getvalue()

def decode_ciphers(data: bytes) -> list:
    """
    Decode a ciphertext file into its ordered list of ciphers.

    Raises:
        FormatError: On a wrong magic/version or a truncated stream
    """
    r = Reader(data, "ciphertext file")
    r.expect_header(MAGIC_CT)
    count = r.count(MIN_CIPHER_SIZE, "cipher count")
    return [read_cipher(r) for _ in range(count)]

# -----------------------------
# Files: Public Key
# -----------------------------
def write_params(w: Writer, prm: Params):
    for value in (prm.m_bits, prm.B, prm.lpn_t, prm.lpn_n, prm.lpn_tau_num,
                  prm.lpn_tau_den, prm.noise_entropy_bits, prm.depth_slope_bits):
        w.u32(value)
    w.u64(prm.tuple2_bits)
    w.u32(prm.edge_budget)

def read_params(r: Reader) -> Params:
    m_bits, B, lpn_t, lpn_n, tau_num, tau_den, noise_bits, slope_bits = (r.u32() for _ in range(8))
    tuple2_bits = r.u64()
    edge_budget = r.u32()
    return Params(
        m_bits=m_bits, B=B, lpn_t=lpn_t, lpn_n=lpn_n,
        lpn_tau_num=tau_num, lpn_tau_den=tau_den,
        noise_entropy_bits=noise_bits, depth_slope_bits=slope_bits,
        tuple2_bits=tuple2_bits, edge_budget=edge_budget
    )

def encode_pubkey(pk: PubKey) -> bytes:
    if len(pk.H_digest) != H_DIGEST_LEN:
        raise ValueError(f"H_digest must be {H_DIGEST_LEN} bytes")
    w = Writer()
    w.header(MAGIC_PK)
    write_params(w, pk.prm)
    w.u64(pk.canon_tag)
    w.raw(bytes(pk.H_digest))
    w.u64(len(pk.H))
    for h in pk.H:
        write_bitvec(w, h)
    w.u64(len(pk.ubk.perm))
    w.array(pk.ubk.perm, "<u4")
    w.u64(len(pk.ubk.inv))
    w.array(pk.ubk.inv, "<u4")
    write_fp(w, pk.omega_B)
    w.u64(len(pk.powg_B))
    for f in pk.powg_B:
        write_fp(w, f)
    return w.getvalue()

def decode_pubkey(data: bytes) -> PubKey:
    r = Reader(data, "public key")
    r.expect_header(MAGIC_PK)
    prm = read_params(r)
    canon_tag = r.u64()
    H_digest = r.raw(H_DIGEST_LEN)
    H = [read_bitvec(r) for _ in range(r.count(MIN_BITVEC_SIZE, "H"))]
    perm = r.array(r.count(U32.size, "ubk.perm"), "<u4")
    inv = r.array(r.count(U32.size, "ubk.inv"), "<u4")
    omega_B = read_fp(r)
    powg_B = [read_fp(r) for _ in range(r.count(FP_SIZE, "powg_B"))]
    return PubKey(
        prm=prm, canon_tag=canon_tag, H_digest=H_digest, H=H,
        ubk=UnblindKey(perm, inv), omega_B=omega_B, powg_B=powg_B
    )

# -----------------------------
# Files: Secret Key
# -----------------------------
def encode_seckey(sk: SecKey) -> bytes:
    w = Writer()
    w.header(MAGIC_SK)
    for k in sk.prf_k:
        w.u64(k)
    w.u64(len(sk.lpn_s_bits))
    w.array(sk.lpn_s_bits, "<u8")
    return w.getvalue()

def decode_seckey(data: bytes) -> SecKey:
    r = Reader(data, "secret key")
    r.expect_header(MAGIC_SK)
    prf_k = tuple(r.u64() for _ in range(PRF_KEY_WORDS))
    lpn_s_bits = r.array(r.count(U64.size, "lpn_s_bits"), "<u8")
    return SecKey(prf_k, lpn_s_bits)
