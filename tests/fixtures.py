# vim: set ai et ts=4 sw=4 sts=4:
"""
Builders for keystore images and the DER structures stored inside them.

Only what the tests need is covered: definite-length DER, a small
self-signed-style certificate layout, PKCS#8 keys and JKS key protection.
"""
import hashlib

from jksread.util import b2, b4, b8

MAGIC = b"\xFE\xED\xFE\xED"
TIMESTAMP = 1463338684456

RSA_ENCRYPTION = "1.2.840.113549.1.1.1"
SHA256_WITH_RSA = "1.2.840.113549.1.1.11"
SUN_JKS_KEY_PROTECTOR = "1.3.6.1.4.1.42.2.17.1.1"
COMMON_NAME = "2.5.4.3"
ORGANIZATION = "2.5.4.10"

# ----------------------------------------------------------------- DER

def der_length(n):
    if n < 0x80:
        return bytes([n])
    encoded = n.to_bytes((n.bit_length() + 7) // 8, 'big')
    return bytes([0x80 | len(encoded)]) + encoded

def tlv(tag, content):
    return bytes([tag]) + der_length(len(content)) + content

def sequence(*parts):
    return tlv(0x30, b"".join(parts))

def set_of(*parts):
    return tlv(0x31, b"".join(parts))

def integer(n):
    return tlv(0x02, n.to_bytes(n.bit_length() // 8 + 1, 'big'))

def oid(dotted):
    arcs = [int(a) for a in dotted.split(".")]
    body = bytearray([40 * arcs[0] + arcs[1]])
    for arc in arcs[2:]:
        chunk = [arc & 0x7F]
        arc >>= 7
        while arc:
            chunk.append(0x80 | (arc & 0x7F))
            arc >>= 7
        body.extend(reversed(chunk))
    return tlv(0x06, bytes(body))

def null():
    return b"\x05\x00"

def utf8_string(text):
    return tlv(0x0C, text.encode('utf-8'))

def utc_time(text):
    return tlv(0x17, text.encode('ascii'))

def octet_string(data):
    return tlv(0x04, data)

def bit_string(data):
    return tlv(0x03, b"\x00" + data)

def explicit(number, content):
    return tlv(0xA0 | number, content)

def name(common_name, organization=None):
    rdns = []
    if organization is not None:
        rdns.append(set_of(sequence(oid(ORGANIZATION), utf8_string(organization))))
    rdns.append(set_of(sequence(oid(COMMON_NAME), utf8_string(common_name))))
    return sequence(*rdns)

def certificate(subject_cn, issuer_cn=None, serial=1, organization=None,
                not_before="160101000000Z", not_after="360101000000Z"):
    """A structurally valid X.509 v3 certificate; the signature is filler."""
    if issuer_cn is None:
        issuer_cn = subject_cn
    algorithm = sequence(oid(SHA256_WITH_RSA), null())
    public_key_info = sequence(sequence(oid(RSA_ENCRYPTION), null()),
                               bit_string(sequence(integer(0xC0FFEE), integer(65537))))
    tbs = sequence(explicit(0, integer(2)),
                   integer(serial),
                   algorithm,
                   name(issuer_cn, organization),
                   sequence(utc_time(not_before), utc_time(not_after)),
                   name(subject_cn, organization),
                   public_key_info)
    return sequence(tbs, algorithm, bit_string(b"\x5A" * 32))

def pkcs8_private_key(raw_key, algorithm=RSA_ENCRYPTION):
    return sequence(integer(0), sequence(oid(algorithm), null()), octet_string(raw_key))

# ----------------------------------------------------- key protection

def jks_protect(plaintext, password, iv=b"\x07" * 20, algorithm=SUN_JKS_KEY_PROTECTOR):
    """Protects a PKCS#8 key the way keytool does and wraps it in an EncryptedPrivateKeyInfo."""
    password_bytes = password.encode('utf-16be')
    stream = b""
    cur = iv
    while len(stream) < len(plaintext):
        cur = hashlib.sha1(password_bytes + cur).digest()
        stream += cur
    encrypted = bytes(p ^ s for p, s in zip(plaintext, stream))
    check = hashlib.sha1(password_bytes + plaintext).digest()
    return sequence(sequence(oid(algorithm), null()), octet_string(iv + encrypted + check))

# ------------------------------------------------------------ keystore

def utf(text):
    encoded = text.encode('utf-8')
    return b2.pack(len(encoded)) + encoded

def data(payload):
    return b4.pack(len(payload)) + payload

def cert_link(der, cert_type="X.509"):
    return utf(cert_type) + data(der)

def trusted_cert_entry(alias, der, timestamp=TIMESTAMP, cert_type="X.509"):
    return b4.pack(2) + utf(alias) + b8.pack(timestamp) + cert_link(der, cert_type)

def private_key_entry(alias, encrypted, chain, timestamp=TIMESTAMP):
    result = b4.pack(1) + utf(alias) + b8.pack(timestamp) + data(encrypted)
    result += b4.pack(len(chain))
    for der in chain:
        result += cert_link(der)
    return result

def keystore(*entries, **kwargs):
    """
    Assembles a keystore image from pre-encoded entries.

    Keyword arguments: ``version`` (default 2), ``count`` (default: number of
    entries) and ``password``; if a password is given, the integrity hash is
    appended.
    """
    body = MAGIC + b4.pack(kwargs.get("version", 2)) + b4.pack(kwargs.get("count", len(entries)))
    body += b"".join(entries)
    password = kwargs.get("password")
    if password is not None:
        body += hashlib.sha1(password.encode('utf-16be') + b"Mighty Aphrodite" + body).digest()
    return body


class RSA2048_chain:
    leaf = certificate("server.example.com", issuer_cn="Example Intermediate CA", serial=0x1001, organization="Example")
    intermediate = certificate("Example Intermediate CA", issuer_cn="Example Root CA", serial=0x1000, organization="Example")
    root = certificate("Example Root CA", serial=0x0FFF, organization="Example")
    certs = [leaf, intermediate, root]
    raw_private_key = sequence(integer(0), integer(0xC0FFEE), integer(65537))
    private_key = pkcs8_private_key(raw_private_key)
