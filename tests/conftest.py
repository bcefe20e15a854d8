import hashlib
import random
import numpy as np
import pytest

from pvac.models import (
    SGN_P, SGN_M, Params, Nonce, Seed, BaseLayer, ProdLayer, Edge, Cipher, UnblindKey,
    PubKey, SecKey, Fp, BitVec, double_to_bits
)
from pvac.utils.field import (P)

# -----------------------------
# Toy Scheme Backend
# -----------------------------
class ToyScheme:
    """
    Minimal stand-in for the external encryption scheme.

    R for a BASE layer is SHAKE-256 over the PRF key and the layer seed.
    A value v is split across two edges as R0*(v+mask) (+) and R1*mask (-),
    so the G-sum stays blinded while dec_value cancels R and the mask.
    """

    def __init__(self, seed: int = 1):
        self.rng = random.Random(seed)

    def prf_R(self, sk: SecKey, seed: Seed) -> Fp:
        xof = hashlib.shake_256()
        for k in sk.prf_k:
            xof.update(k.to_bytes(8, "little"))
        for word in (seed.ztag, seed.nonce.lo, seed.nonce.hi):
            xof.update(word.to_bytes(8, "little"))
        r = Fp.from_int(int.from_bytes(xof.digest(16), "little"))
        return r if not r.is_zero() else Fp.from_int(1)

    def _fresh_seed(self) -> Seed:
        return Seed(self.rng.getrandbits(64), Nonce(self.rng.getrandbits(64), self.rng.getrandbits(64)))

    def _sigma(self, nbits: int = 100) -> BitVec:
        # Random words, trailing bits past nbits included
        return BitVec(nbits, [self.rng.getrandbits(64) for _ in range((nbits + 63) // 64)])

    def enc_value(self, pk: PubKey, sk: SecKey, value: int) -> Cipher:
        layers = [BaseLayer(self._fresh_seed()), BaseLayer(self._fresh_seed()), ProdLayer(0, 1)]
        r0 = self.prf_R(sk, layers[0].seed)
        r1 = self.prf_R(sk, layers[1].seed)
        mask = Fp.from_int(self.rng.randrange(1, P))
        v = Fp.from_int(value)
        edges = [
            Edge(0, 0, SGN_P, r0 * (v + mask), self._sigma()),
            Edge(1, 1, SGN_M, r1 * mask, self._sigma()),
        ]
        return Cipher(layers, edges)

    def dec_value(self, pk: PubKey, sk: SecKey, ct: Cipher) -> Fp:
        acc = Fp.from_int(0)
        for e in ct.E:
            term = e.w * self.prf_R(sk, ct.L[e.layer_id].seed).inv()
            acc = acc + term if e.ch == SGN_P else acc - term
        return acc

    def ct_div_const(self, pk: PubKey, ct: Cipher, k: Fp) -> Cipher:
        k_inv = k.inv()
        edges = [Edge(e.layer_id, e.idx, e.ch, e.w * k_inv, BitVec(e.s.nbits, e.s.w)) for e in ct.E]
        return Cipher(list(ct.L), edges)

# -----------------------------
# Key Fixtures
# -----------------------------
def make_keys(seed: int = 7, n_powers: int = 8, n_perm: int = 16):
    rng = random.Random(seed)
    nrng = np.random.default_rng(seed)
    prm = Params(
        m_bits=4096, B=337, lpn_t=16384, lpn_n=4096, lpn_tau_num=1, lpn_tau_den=8,
        noise_entropy_bits=120, depth_slope_bits=16, tuple2_bits=double_to_bits(0.3125), edge_budget=2048
    )
    H = [BitVec(130, [rng.getrandbits(64) for _ in range(3)]) for _ in range(4)]
    perm = nrng.permutation(n_perm).astype(np.uint32)
    inv = np.argsort(perm).astype(np.uint32)
    omega = Fp.from_int(rng.randrange(2, P))
    powg = [Fp.from_int(pow(int(omega), i, P)) for i in range(n_powers)]
    pk = PubKey(
        prm=prm,
        canon_tag=rng.getrandbits(64),
        H_digest=hashlib.sha256(b"".join(h.w.tobytes() for h in H)).digest(),
        H=H,
        ubk=UnblindKey(perm, inv),
        omega_B=omega,
        powg_B=powg,
    )
    sk = SecKey(
        prf_k=tuple(rng.getrandbits(64) for _ in range(4)),
        lpn_s_bits=np.array([rng.getrandbits(64) for _ in range(64)], dtype=np.uint64),
    )
    return pk, sk


@pytest.fixture
def keys():
    return make_keys()


@pytest.fixture
def pk(keys):
    return keys[0]


@pytest.fixture
def sk(keys):
    return keys[1]


@pytest.fixture
def scheme():
    return ToyScheme(seed=2024)


@pytest.fixture
def division_corpus(pk, sk, scheme):
    """a = Enc(5), b = Enc(7) independently, divresult = a / 7 with a's randomness."""
    a = scheme.enc_value(pk, sk, 5)
    b = scheme.enc_value(pk, sk, 7)
    divresult = scheme.ct_div_const(pk, a, Fp.from_int(7))
    return {"a": a, "b": b, "divresult": divresult}
