"""
TLS helpers for talking to peers over https.

Peers usually present certificates from a private CA. When the caller
supplies that CA as PEM, it is written to a private temp file whose path
is handed to requests as `verify=`. Without one, verification is off and
the connection is still encrypted.
"""
import hashlib
import logging
import os
import tempfile

import urllib3
from cryptography.hazmat.primitives import hashes
from cryptography.x509 import load_pem_x509_certificate

log = logging.getLogger("ledgerlink.tls")


def write_temp_pem(pem_bytes: bytes, name: str) -> str:
    """Write PEM bytes to <tmpdir>/ledgerlink-{name}.pem (mode 0600) and return the path."""
    path = os.path.join(tempfile.gettempdir(), f"ledgerlink-{name}.pem")
    with open(path, "wb") as f:
        f.write(pem_bytes)
    os.chmod(path, 0o600)
    return path


def cert_fingerprint(cert_pem: str | bytes) -> str:
    """Return the SHA-256 hex fingerprint of a PEM-encoded certificate."""
    if isinstance(cert_pem, str):
        cert_pem = cert_pem.encode()
    cert = load_pem_x509_certificate(cert_pem)
    return cert.fingerprint(hashes.SHA256()).hex()


def verify_setting(ca_pem: str = "") -> str | bool:
    """
    Value for requests' `verify=` parameter.

    Returns a CA bundle path when a CA is configured, else False (and
    silences urllib3's InsecureRequestWarning so every poll doesn't warn).
    """
    if not ca_pem:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        return False
    fp = cert_fingerprint(ca_pem)
    # one file per distinct CA so concurrent clients don't clobber each other
    digest = hashlib.sha256(ca_pem.encode()).hexdigest()[:16]
    path = write_temp_pem(ca_pem.encode(), f"peer-ca-{digest}")
    log.info("Verifying peer certificates against CA %s", fp[:16])
    return path
