from typing import Optional

from pvac.models import (
    BaseLayer, ProdLayer, Cipher, PubKey, SecKey, AnalyzerConfig, RatioReport, SGN_P, Fp, bcolors
)
from pvac.utils.codec import (
    encode_pubkey, decode_pubkey, encode_seckey, decode_seckey, encode_ciphers, decode_ciphers
)
from pvac.utils.analysis import (gsum, analyze_ratio, SchemeBackend)

# -----------------------------
# File I/O
# -----------------------------
def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()

def _write_bytes(path: str, data: bytes):
    with open(path, "wb") as f:
        f.write(data)

def load_pubkey(path: str) -> PubKey:
    return decode_pubkey(_read_bytes(path))

def load_seckey(path: str) -> SecKey:
    return decode_seckey(_read_bytes(path))

def load_ciphertexts(path: str) -> list:
    return decode_ciphers(_read_bytes(path))

def load_ciphertext_files(paths: list) -> list:
    """Load several ciphertext files; result i holds the ciphers of paths[i]."""
    return [load_ciphertexts(p) for p in paths]

def save_pubkey(pk: PubKey, path: str):
    _write_bytes(path, encode_pubkey(pk))

def save_seckey(sk: SecKey, path: str):
    _write_bytes(path, encode_seckey(sk))

def save_ciphertexts(ciphers: list, path: str):
    _write_bytes(path, encode_ciphers(ciphers))

def _pick(ciphers: list, index: int, path: str) -> Cipher:
    if not 0 <= index < len(ciphers):
        raise IndexError(f"{path} holds {len(ciphers)} ciphertext(s), no index {index}")
    return ciphers[index]

# -----------------------------
# Reports
# -----------------------------
def describe_pubkey(pk: PubKey):
    prm = pk.prm
    print(f"{bcolors.BOLD}Public key{bcolors.ENDC}")
    print(f"  m_bits={prm.m_bits} B={prm.B} lpn_n={prm.lpn_n} lpn_t={prm.lpn_t} "
          f"tau={prm.lpn_tau_num}/{prm.lpn_tau_den} edge_budget={prm.edge_budget}")
    print(f"  canon_tag: 0x{pk.canon_tag:016x}")
    print(f"  H_digest: {bytes(pk.H_digest).hex()}")
    print(f"  H rows: {len(pk.H)}, powg_B: {len(pk.powg_B)}, ubk: {len(pk.ubk.perm)}"
          f" ({'consistent' if pk.ubk.is_consistent() else 'INCONSISTENT'})")
    print(f"  omega_B: {pk.omega_B.to_hex()}")

def describe_cipher(ct: Cipher, preview_edges: int = 5):
    """Print the public structure of a cipher: layers, seeds and a few edges."""
    print(f"  Layers: {len(ct.L)}, Edges: {len(ct.E)}")
    for i, layer in enumerate(ct.L):
        if isinstance(layer, BaseLayer):
            s = layer.seed
            print(f"  Layer {i}: BASE ztag=0x{s.ztag:016x} nonce=0x{s.nonce.hi:016x}{s.nonce.lo:016x}")
        elif isinstance(layer, ProdLayer):
            print(f"  Layer {i}: PROD (pa={layer.pa}, pb={layer.pb})")
        else:
            print(f"  Layer {i}: {bcolors.GREY}reserved rule {layer.rule}{bcolors.ENDC}")
    for i, e in enumerate(ct.E[:preview_edges]):
        sign = '+' if e.ch == SGN_P else '-'
        print(f"  Edge {i}: layer={e.layer_id}, idx={e.idx}, sign={sign}, w.lo={e.w.lo}, sigma={e.s.nbits} bits")
    if len(ct.E) > preview_edges:
        print(f"  ... and {len(ct.E) - preview_edges} more edges")

def inspect_files(ct_path: str, pk_path: Optional[str] = None, config: AnalyzerConfig = AnalyzerConfig()) -> list:
    if pk_path:
        describe_pubkey(load_pubkey(pk_path))
    ciphers = load_ciphertexts(ct_path)
    print(f"{bcolors.BOLD}{ct_path}{bcolors.ENDC}: {len(ciphers)} ciphertext(s)")
    for n, ct in enumerate(ciphers):
        print(f"{bcolors.OKCYAN}--- Cipher #{n} ---{bcolors.ENDC}")
        describe_cipher(ct, config.preview_edges)
    return ciphers

def gsum_file(pk_path: str, ct_path: str, index: int = 0) -> Fp:
    """
    Compute the public G-sum of one ciphertext in a file.

    Only the public key is read. The value is not the plaintext; see
    `pvac.utils.analysis.gsum`.
    """
    pk = load_pubkey(pk_path)
    ct = _pick(load_ciphertexts(ct_path), index, ct_path)
    g = gsum(pk, ct)
    print(f"G-sum({ct_path}[{index}]) = sum(sign * w * g^idx)")
    print(f"  lo: {g.lo}")
    print(f"  hi: {g.hi}")
    print(f"  hex: {g.to_hex()}")
    print(f"{bcolors.GREY}(public structural value, not a decryption){bcolors.ENDC}")
    return g

def ratio_attack_files(a_path: str, b_path: str, config: AnalyzerConfig = AnalyzerConfig(), index: int = 0) -> RatioReport:
    """
    Run the shared-randomness ratio attack on ciphertext `index` of two files.

    No key material is read.
    """
    a = _pick(load_ciphertexts(a_path), index, a_path)
    b = _pick(load_ciphertexts(b_path), index, b_path)
    print(f"a: L={len(a.L)} E={len(a.E)}  b: L={len(b.L)} E={len(b.E)}")
    print(f"Seed comparison ({config.seed_match.value}):")
    report = analyze_ratio(a, b, config.seed_match)
    for i, ok in enumerate(report.layer_matches):
        status = f"{bcolors.WARNING}MATCH{bcolors.ENDC}" if ok else f"{bcolors.OKGREEN}DIFFER{bcolors.ENDC}"
        print(f"  Layer {i}: {status}")
    if not report.applicable:
        print(f"{bcolors.OKGREEN}Seeds differ - ratio attack not applicable{bcolors.ENDC}")
        return report
    print(f"{bcolors.FAIL}{bcolors.BOLD}Seed reuse detected: both ciphers share secret R{bcolors.ENDC}")
    print(f"  w_a[0]: {a.E[0].w.lo}")
    print(f"  w_b[0]: {b.E[0].w.lo}")
    print(f"  Ratio k = w_a / w_b: {int(report.ratio)}")
    print(f"{bcolors.GREY}(k is the ratio of the encoded values, not either value){bcolors.ENDC}")
    return report

def decrypt_file(pk_path: str, sk_path: str, ct_path: str, backend: SchemeBackend) -> list:
    """Decrypt every ciphertext in a file through an external scheme backend."""
    pk = load_pubkey(pk_path)
    sk = load_seckey(sk_path)
    values = []
    for n, ct in enumerate(load_ciphertexts(ct_path)):
        v = backend.dec_value(pk, sk, ct)
        print(f"{ct_path}[{n}] decrypts to: {int(v)} (lo={v.lo}, hi={v.hi})")
        values.append(v)
    return values
