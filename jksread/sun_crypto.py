# vim: set et ai ts=4 sts=4 sw=4:
"""
Decryption of private keys protected with the JKS key-protection scheme.

The keystore decoder never calls into this module; it is the default
``decrypt_key`` collaborator used by :meth:`jksread.PrivateKeyEntry.decrypt`.
"""
import hashlib
from pyasn1.codec.ber import decoder
from pyasn1.error import PyAsn1Error
from pyasn1_modules import rfc5208

from .util import *

SUN_JKS_ALGO_ID = (1,3,6,1,4,1,42,2,17,1,1) # JavaSoft proprietary key-protection algorithm

IV_SIZE = 20
CHECK_SIZE = 20


class DecryptedKey(object):
    """A private key recovered from a key-pair entry."""
    def __init__(self, pkey, pkey_pkcs8, algorithm_oid):
        self.pkey = pkey                    #: The algorithm-specific private key encoding (e.g. a PKCS#1 RSAPrivateKey).
        self.pkey_pkcs8 = pkey_pkcs8        #: The full PKCS#8 PrivateKeyInfo.
        self.algorithm_oid = algorithm_oid

    def as_pem(self):
        if self.algorithm_oid == RSA_ENCRYPTION_OID:
            return as_pem(self.pkey, "RSA PRIVATE KEY")
        else:
            return as_pem(self.pkey_pkcs8, "PRIVATE KEY")


def decrypt_key(encrypted, password):
    """
    Decrypts the protected key blob of a JKS key-pair entry.

    :param bytes encrypted: The DER-encoded EncryptedPrivateKeyInfo stored in the entry.
    :param str password: The key password.
    :returns: A :class:`DecryptedKey`.
    :raises DecryptionFailureException: If the password is wrong or the blob is malformed.
    :raises UnexpectedAlgorithmException: If the key was protected with anything other than the JKS algorithm.
    """
    try:
        encrypted_info = decoder.decode(encrypted, asn1Spec=rfc5208.EncryptedPrivateKeyInfo())[0]
    except PyAsn1Error as e:
        raise DecryptionFailureException("Malformed encrypted private key: %s" % e) from e

    algo_id = encrypted_info['encryptionAlgorithm']['algorithm'].asTuple()
    if algo_id != SUN_JKS_ALGO_ID:
        raise UnexpectedAlgorithmException("Unknown JKS private key protection algorithm: %s" % (algo_id,))

    try:
        plaintext = jks_pkey_decrypt(encrypted_info['encryptedData'].asOctets(), password)
    except BadHashCheckException:
        raise DecryptionFailureException("Failed to decrypt private key; wrong password?")

    # at this point, 'plaintext' is a PKCS#8 PrivateKeyInfo (see RFC 5208)
    try:
        private_key_info = decoder.decode(plaintext, asn1Spec=rfc5208.PrivateKeyInfo())[0]
    except PyAsn1Error as e:
        raise DecryptionFailureException("Decrypted data is not a PKCS#8 private key: %s" % e) from e

    return DecryptedKey(pkey=private_key_info['privateKey'].asOctets(),
                        pkey_pkcs8=plaintext,
                        algorithm_oid=private_key_info['privateKeyAlgorithm']['algorithm'].asTuple())

def jks_pkey_decrypt(data, password_str):
    """
    Decrypts the private key password protection algorithm used by JKS keystores.
    The JDK sources state that 'the password is expected to be in printable ASCII', though this does not appear to be enforced;
    the password is converted into bytes simply by taking each individual Java char and appending its raw 2-byte representation.
    See sun/security/provider/KeyProtector.java in the JDK sources.
    """
    password_bytes = password_str.encode('utf-16be') # Java chars are UTF-16BE code units

    if len(data) < IV_SIZE + CHECK_SIZE:
        raise BadHashCheckException("Protected key is too short to contain an IV and check value")

    iv, data, check = data[:IV_SIZE], data[IV_SIZE:-CHECK_SIZE], data[-CHECK_SIZE:]
    key = bytes(xor_bytearrays(data, _jks_keystream(iv, password_bytes)))

    if hashlib.sha1(password_bytes + key).digest() != check:
        raise BadHashCheckException("Bad hash check on private key; wrong password?")
    return key

def _jks_keystream(iv, password):
    """Helper keystream generator for jks_pkey_decrypt"""
    cur = iv
    while 1:
        cur = hashlib.sha1(password + cur).digest()
        for byte in cur:
            yield byte
