from typing import Protocol

from pvac.models import (
    SGN_P, BaseLayer, Cipher, PubKey, SecKey, SeedMatch, RatioReport, Fp, DomainError
)
from pvac.utils.field import (FP_ZERO)

# -----------------------------
# Scheme Backend
# -----------------------------
class SchemeBackend(Protocol):
    """
    Encryption scheme plugged into the toolkit from outside.

    keygen, the PRF and the LPN blinding live behind this interface; the
    toolkit only moves their inputs and outputs through the codec.
    """

    def enc_value(self, pk: PubKey, sk: SecKey, value: int) -> Cipher: ...

    def dec_value(self, pk: PubKey, sk: SecKey, ct: Cipher) -> Fp: ...

    def ct_div_const(self, pk: PubKey, ct: Cipher, k: Fp) -> Cipher: ...

# -----------------------------
# Public Evaluation (G-sum)
# -----------------------------
def edge_terms(pk: PubKey, ct: Cipher):
    """
    Yield the signed public term of every edge: +/- w * powg_B[idx].

    Raises:
        IndexError: If an edge points past the end of powg_B
    """
    table = pk.powg_B
    for n, e in enumerate(ct.E):
        if not 0 <= e.idx < len(table):
            raise IndexError(f"Edge {n} index {e.idx} outside powg_B (size {len(table)})")
        term = e.w * table[e.idx]
        yield term if e.ch == SGN_P else -term

def gsum(pk: PubKey, ct: Cipher) -> Fp:
    """
    Public structural sum G = sum(sign * w * g^idx) over the edges of a cipher.

    Needs only the public key. This is NOT a decryption: each weight is
    still scaled by a secret PRF output R and a random mask, which cancel
    only on the secret-key path (G = R0*(v+mask) + R1*(-mask) for a
    fresh encryption). Use it as a diagnostic and as the quantity whose
    ratios leak when randomness is reused.

    Args:
        pk: Public key providing powg_B
        ct: Cipher to evaluate

    Returns:
        Accumulated field element
    """
    acc = FP_ZERO
    for term in edge_terms(pk, ct):
        acc = acc + term
    return acc

# -----------------------------
# Shared-randomness Ratio Attack
# -----------------------------
def layers_share_seed(la, lb, mode: SeedMatch = SeedMatch.LOOSE) -> bool:
    a_base = isinstance(la, BaseLayer)
    b_base = isinstance(lb, BaseLayer)
    if not (a_base or b_base):
        return True
    if a_base != b_base:
        return False
    sa, sb = la.seed, lb.seed
    same = sa.ztag == sb.ztag and sa.nonce.lo == sb.nonce.lo
    if mode is SeedMatch.STRICT:
        same = same and sa.nonce.hi == sb.nonce.hi
    return same

def compare_seeds(a: Cipher, b: Cipher, mode: SeedMatch = SeedMatch.LOOSE) -> list:
    """
    Compare layer seeds position by position over the common prefix.

    Index i of one cipher is only ever compared with index i of the other;
    no attempt is made to line up permuted layers.
    """
    return [layers_share_seed(la, lb, mode) for la, lb in zip(a.L, b.L)]

def ratio_of_first_weights(a: Cipher, b: Cipher) -> Fp:
    if not a.E or not b.E:
        raise IndexError("Ratio attack needs at least one edge in each cipher")
    w_a = a.E[0].w
    w_b = b.E[0].w
    if w_b.is_zero():
        raise DomainError("First edge weight of the second cipher is zero; ratio undefined")
    return w_a * w_b.inv()

def analyze_ratio(a: Cipher, b: Cipher, mode: SeedMatch = SeedMatch.LOOSE) -> RatioReport:
    """
    Detect seed reuse between two ciphers and, if found, recover the ratio
    of their encoded values from public weights alone.

    When both ciphers were built from the same secret randomness, edge 0
    of each has weight R * x for the same secret R, so
    k = w_a / w_b = x_a / x_b and R cancels. For b = ct_div_const(a, d)
    this recovers the public divisor d. For an independent encryption the
    seeds differ and nothing is computed.

    k is a ratio only: it does not reveal x_a or x_b on their own.

    Args:
        a, b: Ciphers to compare, in that order
        mode: LOOSE (ztag + nonce.lo) or STRICT (also nonce.hi)

    Returns:
        RatioReport with per-layer matches and the ratio when applicable

    Raises:
        DomainError: If seeds match but b's first weight is zero
        IndexError: If seeds match but either cipher has no edges
    """
    matches = compare_seeds(a, b, mode)
    if not all(matches):
        return RatioReport(seeds_match=False, layer_matches=matches)
    k = ratio_of_first_weights(a, b)
    return RatioReport(seeds_match=True, layer_matches=matches, ratio=k)

def recover_dividend(quotient: Fp, divisor: Fp) -> Fp:
    """Undo a constant division: quotient * divisor."""
    return quotient * divisor
