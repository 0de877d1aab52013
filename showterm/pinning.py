"""
TLS public key pinning for the default showterm server

A connection to the default server must pass normal certificate validation
AND present a chain in which at least one certificate carries one of the
public keys below.
"""
import logging
import re
from typing import FrozenSet, Iterable, List

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPSConnection

from showterm.errors import TlsPinMismatchError

logger = logging.getLogger("showterm.pinning")

PINNED_PUBLIC_KEYS_PEM = """
# Entrust.net Certification Authority (2048)
-----BEGIN PUBLIC KEY-----
MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8AMIIBCgKCAQEArU1LqRKGsuqjIAcVFmQq
K0vRvwtKTY7tgHalZ7d4QMBzQshowNtTK91euHaYNZOLGp18EzoOH1u3Hs/lJBQe
sYGpjX24zGtLA/ECDNyrpUAkAH90lKGdCCmziAv1h3edVc3kw37XamSrhRSGlVuX
MlBvPci6Zgzj/L24ScF2iUkZ/cCovYmjZy/Gn7xxGWC4LeksyZB2ZnuU4q941mVT
XTzWnLLPKQP5L6RQstRIzgUyVYr9smRMDuSYB3Xbf9+5CFVghTAp+XtIpGmG4zU/
HoZdenoVve8AjhUiVBcAkCaTvA5JaJG/+EfTnZVCwQ5N328mz8MYIWJmQ3DW1cAH
4QIDAQAB
-----END PUBLIC KEY-----
# DigiCert High Assurance EV Root CA
-----BEGIN PUBLIC KEY-----
MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8AMIIBCgKCAQEAxszlc+b71LvlLS0ypt/l
gT/JzSVJtnEqw9WUNGeiChywX2mmQLHEt7KP0JikqUFZOtPclNY823Q4pErMTSWC
90qlUxI47vNJbXGRfmO2q6Zfw6SE+E9iUb74xezbOJLjBuUIkQzEKEFV+8taiRV+
ceg1v01yCT2+OjhQW3cxG42zxyRFmqesbQAUWgS3uhPrUQqYQUEiTmVhh4FBUKZ5
XIneGUpX1S7mXRxTLH6YzRoGFqRoc9A0BBNcoXHTWnxV215k4TeHMFYE5RG0KYAS
8Xk5iKICEXwnZreIt3jyygqoOKsKZMK/Zl2VhMGhJR6HXRpQCyASzEG7bgtROLhL
ywIDAQAB
-----END PUBLIC KEY-----
# DigiCert High Assurance CA-3
-----BEGIN PUBLIC KEY-----
MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8AMIIBCgKCAQEAv2EKKRAfXv40N1EI+B77
Iu1hvgsNcExQYyZ1FblBiJe28KAVuwhg4ELoBSkQhzaKKGWo7zEHdG02ly8oRmYE
xyp5JnqZ1Y7DbU+gXq28PZHCWXteNmzAU88ACDI+EGRYEBNpxwzunEJRAPkFRO4k
znof7YwRvRKo8xX0HHoxaQEbp+ZdwJpsfgme51JEShA6I+SbtgOvqJy0W5/US62S
jM61ESqqNxiNtMK42FwGjPj/I701XtR8Pn6DDpGWBZjDsh/jyGXrqXtdoCzM/DzZ
be3M+ktDjMnUuKVhHLJAtigS37n4X/7TssnvPbQeS3wcTJk2nj3r7KdoXh3fZ25e
+wIDAQAB
-----END PUBLIC KEY-----
# *.herokuapp.com
-----BEGIN PUBLIC KEY-----
MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8AMIIBCgKCAQEA4NFOIp0lCNiVNrHMtZ7z
cjhvKWbUne0p5lK/YozULHPWBT95Jk+LcAdq7C8wmsCRPTirPdYAMywGAdFgB32f
9Do2odsohBkT4GNciFI09GjkBu1XR14mw2ooKT70Ldc7jCKyHdnbcMn/jb2PRIYU
qx4SEtXSU/ERJ7sJDVOwERJcJheR0WCpAb3KUEFnAMRDIAMepZmx4BUGB1ZVeYrP
dklT00FcJqWT1WG5nm4PMfp5TAP/nr3oNJDD07yEmGVFAfD3Z2kybiNa9taXphsg
sop/dINAKj8u5pMPrgIaWQbyVK9nSbFl4hI4cWz/b5PEPK8KKzQ7JlguKDRyxYmI
jQIDAQAB
-----END PUBLIC KEY-----
"""

PEM_BLOCK = re.compile(
    r"-----BEGIN PUBLIC KEY-----.+?-----END PUBLIC KEY-----", re.DOTALL
)


def public_key_der(public_key) -> bytes:
    """DER encoded SubjectPublicKeyInfo, the form pins are compared in"""
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def load_pinned_keys(pem_text: str = PINNED_PUBLIC_KEYS_PEM) -> FrozenSet[bytes]:
    keys = set()
    for block in PEM_BLOCK.findall(pem_text):
        key = serialization.load_pem_public_key(block.encode())
        keys.add(public_key_der(key))
    return frozenset(keys)


def verify_pinned_chain(der_chain: Iterable[bytes], pinned_keys: FrozenSet[bytes]) -> None:
    """Raise TlsPinMismatchError unless some certificate in the chain is pinned"""
    subjects = []
    for der in der_chain:
        cert = x509.load_der_x509_certificate(der)
        if public_key_der(cert.public_key()) in pinned_keys:
            logger.debug(f"Pinned key found on {cert.subject.rfc4514_string()}")
            return
        subjects.append(cert.subject.rfc4514_string())
    raise TlsPinMismatchError(
        f"Server certificate chain is not signed by a known key: {subjects or 'no certificates'}"
    )


def _certificate_der(cert) -> bytes:
    if isinstance(cert, bytes):
        return cert
    # _ssl.Certificate objects export PEM by default
    pem = cert.public_bytes()
    if isinstance(pem, str):
        pem = pem.encode()
    return x509.load_pem_x509_certificate(pem).public_bytes(serialization.Encoding.DER)


def peer_certificate_chain(sock) -> List[bytes]:
    """DER certificates of the verified chain presented by the peer, leaf first"""
    get_chain = getattr(sock, "get_verified_chain", None)
    if get_chain is None:
        # Python 3.10-3.12 only expose the chain on the underlying _ssl object
        get_chain = getattr(getattr(sock, "_sslobj", None), "get_verified_chain", None)
    if get_chain is not None:
        chain = get_chain()
        if chain:
            return [_certificate_der(cert) for cert in chain]
    # TLS-in-TLS proxy transports only give us the leaf
    leaf = sock.getpeercert(binary_form=True)
    return [leaf] if leaf else []


class PinnedConnectionMixin:
    """Checks pinned_keys against the peer chain once the handshake is done"""
    pinned_keys: FrozenSet[bytes] = frozenset()

    def connect(self):
        super().connect()
        try:
            verify_pinned_chain(peer_certificate_chain(self.sock), self.pinned_keys)
        except TlsPinMismatchError:
            logger.error(f"TLS pin mismatch for {self.host}")
            self.close()
            raise


class PinnedHTTPSConnection(PinnedConnectionMixin, HTTPSConnection):
    pass


def pinned_pool_class(pool_cls, pinned_keys: FrozenSet[bytes]):
    """Subclass an HTTPS pool so its connections enforce pinned_keys"""
    base_connection = pool_cls.ConnectionCls
    if issubclass(base_connection, PinnedConnectionMixin):
        return pool_cls
    keys = frozenset(pinned_keys)

    class _Connection(PinnedConnectionMixin, base_connection):
        pinned_keys = keys

    class _Pool(pool_cls):
        ConnectionCls = _Connection

    return _Pool


class PinnedHTTPAdapter(HTTPAdapter):
    """
    requests transport adapter enforcing pinned_keys on every HTTPS connection

    Certificate validation by requests still applies; the pin check runs
    right after the handshake, before the request is written. Connections
    made through a proxy are pinned too.
    """
    __attrs__ = HTTPAdapter.__attrs__ + ["pinned_keys"]

    def __init__(self, pinned_keys: Iterable[bytes], **kwargs):
        self.pinned_keys = frozenset(pinned_keys)
        super().__init__(**kwargs)

    def _pin(self, manager):
        classes = dict(manager.pool_classes_by_scheme)
        classes["https"] = pinned_pool_class(classes["https"], self.pinned_keys)
        manager.pool_classes_by_scheme = classes
        return manager

    def init_poolmanager(self, *args, **kwargs):
        super().init_poolmanager(*args, **kwargs)
        self._pin(self.poolmanager)

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        return self._pin(super().proxy_manager_for(proxy, **proxy_kwargs))
