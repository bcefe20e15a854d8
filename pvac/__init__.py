"""
PVAC - codec, public evaluation and seed-reuse analysis toolkit

Key Cryptographic Principles Documented:
Layered Additive Blinding:

Ciphertexts are small DAGs of layers (BASE layers seeded for a PRF, PROD
layers combining two others) plus a list of signed, weighted edges
Every edge weight is a plaintext-dependent value scaled by a secret R that
only the secret-key holder (PRF key + LPN secret) can recompute

Finite Field Arithmetic:

All weights live in Fp with the Mersenne prime p = 2^127 - 1
Two 64-bit limbs per element, matching the on-disk layout
Exact modular inverse via the Extended Euclidean Algorithm

Public Evaluation:

The G-sum (sum of sign * w * g^idx) needs only the public key
It is a diagnostic, not a decryption: R and a random mask stay hidden

Randomness Reuse:

Two ciphertexts sharing BASE-layer seeds share R, so the ratio of their
edge weights cancels R and leaks the ratio of the encoded values
Constant division by a public divisor is the textbook case: the divisor
falls out of w_a / w_div without any key material

Binary Formats:

Versioned, little-endian records for public keys, secret keys and
ciphertext collections, decoded strictly (bad header or truncation is an
error, never a silent default)

This implementation is for analysis and testing; it ships no keygen or
encryption of its own.
"""
