# vim: set et ai ts=4 sts=4 sw=4:
import textwrap
import base64
import struct

b8 = struct.Struct('>Q')
b4 = struct.Struct('>L') # unsigned
b2 = struct.Struct('>H')

RSA_ENCRYPTION_OID = (1,2,840,113549,1,1,1)
COMMON_NAME_OID    = (2,5,4,3)

class KeystoreException(Exception):
    """Superclass for all jksread exceptions."""
    pass
class BadKeystoreFormatException(KeystoreException):
    """Signifies that the data does not start with the JKS magic number."""
    def __init__(self, expected, actual):
        super(BadKeystoreFormatException, self).__init__(
            "Not a JKS keystore (magic number wrong; expected %s, found %s)" % (as_hex(expected), as_hex(actual)))
        self.expected = expected
        self.actual = actual
class UnsupportedKeystoreVersionException(KeystoreException):
    """Signifies an unexpected or unsupported keystore format version."""
    def __init__(self, version):
        super(UnsupportedKeystoreVersionException, self).__init__(
            "Unsupported keystore version; expected v2, found v%r" % version)
        self.version = version
class ShortReadException(KeystoreException):
    """Signifies that the input ended before a field could be read in full.

    :ivar int needed: the number of bytes the field required.
    """
    def __init__(self, needed):
        super(ShortReadException, self).__init__(
            "Buffer is too short; at least %d byte(s) are required" % needed)
        self.needed = needed
class BadEncodingException(KeystoreException):
    """Signifies that a length-prefixed string did not contain valid UTF-8 data."""
    pass
class UnsupportedKeystoreEntryTypeException(KeystoreException):
    """Signifies that the keystore entry tag was not one of the known entry types."""
    def __init__(self, tag):
        super(UnsupportedKeystoreEntryTypeException, self).__init__(
            "Unexpected keystore entry tag %d" % tag)
        self.tag = tag
class UnsupportedCertificateTypeException(KeystoreException):
    """Signifies a certificate type other than X.509."""
    def __init__(self, cert_type):
        super(UnsupportedCertificateTypeException, self).__init__(
            "Unsupported certificate type '%s'; only X.509 is supported" % cert_type)
        self.cert_type = cert_type
class CertificateParseException(KeystoreException):
    """
    Signifies that the certificate parser rejected the DER data of a certificate.
    The original error raised by the parser is available as ``cause``.
    """
    def __init__(self, cause):
        super(CertificateParseException, self).__init__("Failed to parse certificate: %s" % (cause,))
        self.cause = cause
class KeystoreSignatureException(KeystoreException):
    """Signifies that the supplied password for a keystore integrity check is incorrect."""
    pass
class BadHashCheckException(KeystoreException):
    """Signifies that a hash computation did not match an expected value."""
    pass
class DecryptionFailureException(KeystoreException):
    """Signifies failure to decrypt a value."""
    pass
class UnexpectedAlgorithmException(KeystoreException):
    """Signifies that an unexpected cryptographic algorithm was used in a keystore."""
    pass


class ByteReader(object):
    """
    Forward-only cursor over a byte buffer owned by the caller.

    Every read checks that the whole field is available before consuming it, and
    raises :class:`ShortReadException` otherwise. A failed read leaves the position
    where it was.
    """
    def __init__(self, data, pos=0):
        self.data = data
        self.pos = pos

    @property
    def remaining(self):
        return len(self.data) - self.pos

    def _require(self, n):
        if self.remaining < n:
            raise ShortReadException(n)

    def _unpack(self, fmt):
        self._require(fmt.size)
        value = fmt.unpack_from(self.data, self.pos)[0]
        self.pos += fmt.size
        return value

    def read_u16(self):
        return self._unpack(b2)

    def read_u32(self):
        return self._unpack(b4)

    def read_u64(self):
        return self._unpack(b8)

    def read_bytes(self, n):
        if n < 0:
            raise ValueError("Cannot read a negative number of bytes: %d" % n)
        self._require(n)
        result = bytes(self.data[self.pos:self.pos+n])
        self.pos += n
        return result

    def read_utf(self, kind=None):
        """
        Reads a 2-byte length followed by that many bytes of UTF-8 text.

        :param kind: Optional; a human-friendly identifier for the kind of UTF-8 data we're loading (e.g. is it a keystore alias? a certificate type?).
                     Used to construct more informative exception messages when a decoding error occurs.
        """
        start = self.pos
        size = self.read_u16()
        try:
            raw = self.read_bytes(size)
        except ShortReadException:
            self.pos = start
            raise
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError as e:
            self.pos = start
            raise BadEncodingException(("Failed to read %s, contains bad UTF-8 data: %s" % (kind, str(e))) if kind else \
                                       ("Encountered bad UTF-8 data: %s" % str(e)))

    def read_data(self):
        """Reads a 4-byte length followed by that many opaque bytes."""
        start = self.pos
        size = self.read_u32()
        try:
            return self.read_bytes(size)
        except ShortReadException:
            self.pos = start
            raise

    def read_timestamp(self):
        """Milliseconds since the UNIX epoch, as stored; no further interpretation."""
        return self.read_u64()


def as_hex(ba):
    return "".join("{:02x}".format(b) for b in bytearray(ba))

def as_pem(der_bytes, type):
    result = "-----BEGIN %s-----\n" % type
    result += "\n".join(textwrap.wrap(base64.b64encode(der_bytes).decode('ascii'), 64))
    result += "\n-----END %s-----" % type
    return result

def xor_bytearrays(a, b):
    return bytearray([x^y for x,y in zip(a,b)])
