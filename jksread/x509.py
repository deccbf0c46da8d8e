# vim: set et ai ts=4 sts=4 sw=4:
"""
Default certificate parser used for the DER payloads found in keystore entries.

Only the fields needed to describe a certificate (subject, issuer, serial
number, validity) are extracted; signatures are not checked.
"""
from pyasn1.codec.ber import decoder
from pyasn1.error import PyAsn1Error
from pyasn1_modules import rfc2459

from .util import *

# short names for the attribute types commonly found in certificate names
NAME_ATTRIBUTE_LABELS = {
    (2,5,4,3):  "CN",
    (2,5,4,5):  "SERIALNUMBER",
    (2,5,4,6):  "C",
    (2,5,4,7):  "L",
    (2,5,4,8):  "ST",
    (2,5,4,10): "O",
    (2,5,4,11): "OU",
    (1,2,840,113549,1,9,1): "EMAILADDRESS",
    (0,9,2342,19200300,100,1,25): "DC",
}


class Certificate(object):
    """A parsed X.509 certificate, together with the DER bytes it was parsed from."""
    type = "X.509"

    def __init__(self, der, version, serial_number, subject, issuer, not_before, not_after):
        self.der = der                       #: The raw DER encoding, exactly as stored in the keystore.
        self.version = version               #: The X.509 version number (1, 2 or 3).
        self.serial_number = serial_number
        self.subject = subject
        """The subject name, as a tuple of ``(oid, value)`` pairs in encoding order."""
        self.issuer = issuer
        """The issuer name, as a tuple of ``(oid, value)`` pairs in encoding order."""
        self.not_before = not_before
        self.not_after = not_after

    @classmethod
    def from_der(cls, der):
        """
        Parses the given DER-encoded certificate.

        :param bytes der: DER encoding of an X.509 certificate.
        :raises CertificateParseException: If the data is not a well-formed certificate.
        """
        try:
            cert, rest = decoder.decode(der, asn1Spec=rfc2459.Certificate())
            if rest:
                raise PyAsn1Error("%d trailing byte(s) after certificate" % len(rest))

            tbs = cert['tbsCertificate']
            validity = tbs['validity']
            return cls(der=bytes(der),
                       version=int(tbs['version']) + 1,
                       serial_number=int(tbs['serialNumber']),
                       subject=_read_name(tbs['subject']),
                       issuer=_read_name(tbs['issuer']),
                       not_before=validity['notBefore'].getComponent().asDateTime,
                       not_after=validity['notAfter'].getComponent().asDateTime)
        except (PyAsn1Error, ValueError) as e:
            raise CertificateParseException(e) from e

    def get_attribute(self, oid, name=None):
        """Returns the first value of the given attribute type in the subject (or given) name, or ``None``."""
        for attr_oid, value in (self.subject if name is None else name):
            if attr_oid == oid:
                return value
        return None

    @property
    def subject_common_name(self):
        return self.get_attribute(COMMON_NAME_OID)

    @property
    def issuer_common_name(self):
        return self.get_attribute(COMMON_NAME_OID, self.issuer)

    def is_self_issued(self):
        return self.subject == self.issuer

    def is_valid_at(self, when):
        return self.not_before <= when <= self.not_after

    def as_pem(self):
        return as_pem(self.der, "CERTIFICATE")

    def __repr__(self):
        return "<Certificate subject=%r serial=%d>" % (format_name(self.subject), self.serial_number)


def format_name(name):
    """Formats a name tuple as e.g. ``CN=example.com, O=Example``, most specific attribute first."""
    parts = []
    for oid, value in reversed(name):
        label = NAME_ATTRIBUTE_LABELS.get(oid, ".".join(str(i) for i in oid))
        parts.append("%s=%s" % (label, value))
    return ", ".join(parts)

def _read_name(name):
    result = []
    for rdn in name.getComponent():
        for atv in rdn:
            oid = atv['type'].asTuple()
            # attribute values are ANY; they are nearly always one of the DirectoryString alternatives
            value, dummy = decoder.decode(atv['value'].asOctets())
            result.append((oid, str(value)))
    return tuple(result)
