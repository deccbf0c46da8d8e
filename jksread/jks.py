# vim: set et ai ts=4 sts=4 sw=4:
"""JKS (version 2) keystore decoder.

Decodes an in-memory keystore image into a :class:`KeyStore` holding the
trusted certificate entries and private key entries in the order they were
stored. Key material stays encrypted; use :meth:`PrivateKeyEntry.decrypt` or
:meth:`KeyStore.decrypt` to recover it.

The decoder does no I/O; :meth:`KeyStore.load` is a thin convenience wrapper
that reads a file and hands its contents to :meth:`KeyStore.loads`.
"""

import datetime
import hashlib

from . import sun_crypto
from . import x509
from .util import *

__version_info__ = (0, 1, 0, 'dev')
__version__ = ".".join(str(x) for x in __version_info__ if str(x))

MAGIC_NUMBER_JKS = b4.pack(0xFEEDFEED)
SUPPORTED_VERSION = 2
SIGNATURE_WHITENING = b"Mighty Aphrodite"
DEFAULT_PASSWORD = "changeit"
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)

ENTRY_TAG_PRIVATE_KEY = 1
ENTRY_TAG_TRUSTED_CERT = 2
CERT_TYPE_X509 = "X.509"


class Options(object):
    """
    Settings for a keystore load.

    :param str default_password: The store password; also used for any key entry
      without its own entry in ``per_alias_passwords``. Defaults to ``changeit``,
      the password of the JDK's bundled trust store.
    :param bool skip_verify: Tells callers to skip the keystore integrity check
      (see :meth:`KeyStore.verify_integrity`). The decoder itself never verifies.
    :param dict per_alias_passwords: Key passwords that differ from the store password, by alias.
    """
    def __init__(self, default_password=DEFAULT_PASSWORD, skip_verify=False, per_alias_passwords=None):
        self.default_password = default_password
        self.skip_verify = skip_verify
        self.per_alias_passwords = dict(per_alias_passwords or {})

    def resolve_password(self, alias):
        return self.per_alias_passwords.get(alias, self.default_password)

    def __repr__(self):
        return "Options(skip_verify=%r, per_alias_passwords=%r)" % (self.skip_verify, sorted(self.per_alias_passwords))


class AbstractKeystoreEntry(object):
    """Abstract superclass for keystore entries."""
    def __init__(self, alias, timestamp):
        self.alias = alias          #: The alias the entry is stored under.
        self.timestamp = timestamp  #: Creation time, in milliseconds since the UNIX epoch.

    @property
    def date(self):
        """The entry's timestamp as an aware UTC ``datetime``."""
        return EPOCH + datetime.timedelta(milliseconds=self.timestamp)


class TrustedCertEntry(AbstractKeystoreEntry):
    """Represents a trusted certificate entry in a JKS keystore."""

    def __init__(self, alias, timestamp, cert, certificate, type=CERT_TYPE_X509):
        super(TrustedCertEntry, self).__init__(alias, timestamp)
        self.type = type
        """A string indicating the type of certificate; always ``X.509`` for entries read by this library."""
        self.cert = cert
        """A byte string containing the DER-encoded X.509 certificate, exactly as stored."""
        self.certificate = certificate
        """The result of running the certificate parser over :attr:`cert`; an
        :class:`~jksread.x509.Certificate` unless a custom parser was given."""

    def __repr__(self):
        return "<TrustedCertEntry alias=%r>" % self.alias


class CertChainLink(object):
    """One certificate of a private key's certificate chain. Chain links have no alias or timestamp of their own."""

    def __init__(self, cert, certificate, type=CERT_TYPE_X509):
        self.type = type
        self.cert = cert                #: The DER-encoded certificate, exactly as stored.
        self.certificate = certificate  #: The certificate parser's result for :attr:`cert`.

    def __repr__(self):
        return "<CertChainLink %d bytes>" % len(self.cert)


class PrivateKeyEntry(AbstractKeystoreEntry):
    """Represents a private key entry in a JKS keystore, with its certificate chain."""

    def __init__(self, alias, timestamp, encrypted, cert_chain):
        super(PrivateKeyEntry, self).__init__(alias, timestamp)
        self.encrypted = encrypted
        """The protected key, as stored (a DER-encoded PKCS#8 EncryptedPrivateKeyInfo). Never decrypted by the decoder."""
        self.cert_chain = tuple(cert_chain)
        """
        The certificate chain associated with the private key, in stored order (normally the key's
        own certificate first), as a tuple of :class:`CertChainLink` instances.
        """

    def decrypt(self, key_password, decrypt_key=sun_crypto.decrypt_key):
        """
        Decrypts the key using the given password and returns the result; the entry itself is not changed.

        :param str key_password: The password to decrypt the key with.
        :param decrypt_key: Decryption function taking the protected key bytes and the password.
        :raises DecryptionFailureException: If the key could not be decrypted using the given password.
        :raises UnexpectedAlgorithmException: If the key was protected with an unknown algorithm.
        """
        return decrypt_key(self.encrypted, key_password)

    def __repr__(self):
        return "<PrivateKeyEntry alias=%r chain=%d>" % (self.alias, len(self.cert_chain))

# --------------------------------------------------------------------------

class KeyStore(object):
    """
    Represents a loaded JKS keystore.
    """

    # entry tag -> reader for the rest of the entry; filled in below the class body
    ENTRY_READERS = {}

    def __init__(self, entries, options=None, key_passwords=None, body_length=None):
        self.entries = tuple(entries)  #: All entries, in stored order.
        self.options = options if options is not None else Options()
        self.body_length = body_length
        """The number of bytes from the start of the file up to the end of the last entry, i.e. the data covered by the integrity hash."""
        self._key_passwords = dict(key_passwords or {})

    @classmethod
    def load(cls, filename, options=None, cert_parser=None):
        """
        Convenience wrapper function; reads the contents of the given file
        and passes it through to :func:`loads`. See :func:`loads`.
        """
        with open(filename, 'rb') as file:
            input_bytes = file.read()
        return cls.loads(input_bytes, options, cert_parser=cert_parser)

    @classmethod
    def loads(cls, data, options=None, cert_parser=None):
        """Decodes the given keystore image and returns a :class:`KeyStore` instance.

        Decoding is a single forward pass; the first structural problem
        aborts it and nothing is returned. Private keys are left in their
        encrypted form. The store's integrity hash is not checked here,
        see :meth:`verify_integrity`.

        :param bytes data: Byte string representation of the keystore
          to be loaded.
        :param Options options: Store and key passwords; defaults to
          ``Options()``.
        :param cert_parser: Callable turning the DER bytes of a
          certificate into a parsed certificate. Defaults to
          :meth:`jksread.x509.Certificate.from_der`.

        :returns: A loaded :class:`KeyStore` instance.

        :raises BadKeystoreFormatException: If the magic number is wrong
        :raises UnsupportedKeystoreVersionException: If the keystore
          is not a version 2 keystore
        :raises ShortReadException: If the data ends in the middle of a field
        :raises BadEncodingException: If an alias or certificate type is
          not valid UTF-8
        :raises UnsupportedKeystoreEntryTypeException: On an entry tag
          other than private key (1) or trusted certificate (2)
        :raises UnsupportedCertificateTypeException: On a certificate
          type other than X.509
        :raises CertificateParseException: If the certificate parser
          rejects a certificate
        """
        if options is None:
            options = Options()
        if cert_parser is None:
            cert_parser = x509.Certificate.from_der

        reader = ByteReader(data)

        magic_number = reader.read_bytes(4)
        if magic_number != MAGIC_NUMBER_JKS:
            raise BadKeystoreFormatException(MAGIC_NUMBER_JKS, magic_number)

        version = reader.read_u32()
        if version != SUPPORTED_VERSION:
            raise UnsupportedKeystoreVersionException(version)

        entries = []
        key_passwords = {}

        entry_count = reader.read_u32()
        for i in range(entry_count):
            tag = reader.read_u32()
            read_entry = cls.ENTRY_READERS.get(tag)
            if read_entry is None:
                raise UnsupportedKeystoreEntryTypeException(tag)

            entry = read_entry(reader, cert_parser)
            if isinstance(entry, PrivateKeyEntry):
                key_passwords[entry.alias] = options.resolve_password(entry.alias)
            entries.append(entry)

        return cls(entries, options=options, key_passwords=key_passwords, body_length=reader.pos)

    @classmethod
    def _read_trusted_cert(cls, reader, cert_parser):
        alias = reader.read_utf(kind="entry alias")
        timestamp = reader.read_timestamp()
        cert_data, certificate = cls._read_cert(reader, cert_parser)
        return TrustedCertEntry(alias=alias, timestamp=timestamp, cert=cert_data, certificate=certificate)

    @classmethod
    def _read_private_key(cls, reader, cert_parser):
        alias = reader.read_utf(kind="entry alias")
        timestamp = reader.read_timestamp()
        ber_data = reader.read_data()

        chain_len = reader.read_u32()
        cert_chain = []
        for j in range(chain_len):
            cert_data, certificate = cls._read_cert(reader, cert_parser)
            cert_chain.append(CertChainLink(cert=cert_data, certificate=certificate))

        return PrivateKeyEntry(alias=alias, timestamp=timestamp, encrypted=ber_data, cert_chain=cert_chain)

    @classmethod
    def _read_cert(cls, reader, cert_parser):
        cert_type = reader.read_utf(kind="certificate type")
        if cert_type != CERT_TYPE_X509:
            raise UnsupportedCertificateTypeException(cert_type)
        cert_data = reader.read_data()

        try:
            certificate = cert_parser(cert_data)
        except CertificateParseException:
            raise
        except Exception as e:
            raise CertificateParseException(e) from e
        return cert_data, certificate

    @property
    def certs(self):
        """The :class:`TrustedCertEntry` instances among :attr:`entries`, in stored order."""
        return tuple(e for e in self.entries if isinstance(e, TrustedCertEntry))

    @property
    def private_keys(self):
        """The :class:`PrivateKeyEntry` instances among :attr:`entries`, in stored order."""
        return tuple(e for e in self.entries if isinstance(e, PrivateKeyEntry))

    def get(self, alias):
        """Returns the first entry stored under the given alias, or ``None``."""
        for entry in self.entries:
            if entry.alias == alias:
                return entry
        return None

    def key_password(self, alias):
        """The password chosen for the given private key entry when the store was loaded."""
        if alias in self._key_passwords:
            return self._key_passwords[alias]
        return self.options.resolve_password(alias)

    def decrypt(self, alias, decrypt_key=sun_crypto.decrypt_key):
        """
        Decrypts the private key stored under the given alias using its resolved password.

        :raises KeyError: If there is no private key entry with that alias.
        :raises DecryptionFailureException: If the resolved password is wrong.
        """
        for entry in self.private_keys:
            if entry.alias == alias:
                return entry.decrypt(self.key_password(alias), decrypt_key=decrypt_key)
        raise KeyError(alias)

    def verify_integrity(self, data, store_password=None):
        """
        Checks the SHA-1 integrity hash that follows the entries of a JKS file.

        :param bytes data: The same keystore image this store was loaded from.
        :param str store_password: Defaults to the options' default password.
        :raises ShortReadException: If the data ends before the full hash.
        :raises KeystoreSignatureException: If the hash does not match, usually because of a wrong password.
        """
        if self.body_length is None:
            raise KeystoreException("Store was not loaded from keystore data; no integrity hash position known")
        if store_password is None:
            store_password = self.options.default_password

        # check keystore integrity (uses UTF-16BE encoding of the password)
        hash_fn = hashlib.sha1
        hash_digest_size = hash_fn().digest_size

        store_password_utf16 = store_password.encode('utf-16be')
        expected_hash = hash_fn(store_password_utf16 + SIGNATURE_WHITENING + bytes(data[:self.body_length])).digest()
        found_hash = ByteReader(data, self.body_length).read_bytes(hash_digest_size)

        if expected_hash != found_hash:
            raise KeystoreSignatureException("Hash mismatch; incorrect keystore password?")

    def __repr__(self):
        return "<KeyStore certs=%d private_keys=%d>" % (len(self.certs), len(self.private_keys))


KeyStore.ENTRY_READERS.update({
    ENTRY_TAG_PRIVATE_KEY:  KeyStore._read_private_key,
    ENTRY_TAG_TRUSTED_CERT: KeyStore._read_trusted_cert,
})


def parse(data, options=None, cert_parser=None):
    """Shorthand for :meth:`KeyStore.loads`."""
    return KeyStore.loads(data, options, cert_parser=cert_parser)
