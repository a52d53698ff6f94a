"""
HybridVault - hybrid-encryption file exchange.

Third-party systems submit files encrypted with AES-256-CBC, the AES key
wrapped with the receiver's RSA-2048 public key and the ciphertext
authenticated with HMAC-SHA256. Stored artifacts carry their own HMAC key
and are re-verified on every download.
"""

__version__ = '1.0.0'
