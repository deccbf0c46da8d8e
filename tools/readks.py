#!/usr/bin/env python
# vim: set et ai ts=4 sts=4 sw=4:
import sys
import logging
import jksread
from jksread.util import as_pem
from jksread.x509 import format_name
from argparse import ArgumentParser

log = logging.getLogger("readks")

def get_entry_metadata(store, entry):
    result = "Alias: %s\n" % entry.alias
    result += "  Type: %s\n" % type(entry).__name__
    result += "  Timestamp: %s\n" % entry.date.strftime('%Y-%m-%dT%H:%M:%SZ')

    if isinstance(entry, jksread.TrustedCertEntry):
        result += "  Certificate type: %s\n" % (entry.type,)
        result += get_cert_metadata(entry.certificate)
    elif isinstance(entry, jksread.PrivateKeyEntry):
        result += "  Certificate chain: %d certificate(s)\n" % len(entry.cert_chain)
        if entry.cert_chain:
            result += get_cert_metadata(entry.cert_chain[0].certificate)
        try:
            key = store.decrypt(entry.alias)
            result += "  Algorithm OID: %s\n" % (key.algorithm_oid,)
        except jksread.KeystoreException as e:
            log.warning("could not decrypt key '%s': %s", entry.alias, e)
            result += "  <not decrypted>\n"

    return result

def get_cert_metadata(cert):
    result = "  Subject: %s\n" % format_name(cert.subject)
    result += "  Issuer: %s\n" % format_name(cert.issuer)
    result += "  Serial number: %x\n" % cert.serial_number
    result += "  Valid: %s - %s\n" % (cert.not_before.isoformat(), cert.not_after.isoformat())
    return result

def get_entry_bits(store, entry):
    if isinstance(entry, jksread.PrivateKeyEntry):
        result = store.decrypt(entry.alias).as_pem()
        for c in entry.cert_chain:
            result += "\n" + as_pem(c.cert, "CERTIFICATE")
        return result

    if isinstance(entry, jksread.TrustedCertEntry):
        return as_pem(entry.cert, "CERTIFICATE")

def parse_key_password(value):
    alias, sep, password = value.partition("=")
    if not sep:
        raise ValueError("expected ALIAS=PASSWORD, got %r" % value)
    return alias, password

def main(argv=None):
    parser = ArgumentParser(description="Utility for reading Java keystores.")
    parser.add_argument("keystore_file")
    parser.add_argument("keystore_password", nargs="?", default=jksread.DEFAULT_PASSWORD)
    parser.add_argument("-k", "--key-password", metavar="ALIAS=PASSWORD", action="append", default=[], type=parse_key_password,
                        help="Password for one private key entry, if it differs from the keystore password. May be repeated.")
    parser.add_argument("--skip-verify", action="store_true", help="Don't check the keystore integrity hash.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    group = parser.add_mutually_exclusive_group()
    group.add_argument("-l", "--list", action="store_true", default=True, help="Print a list of entries/aliases in the keystore and some metadata about each one.")
    group.add_argument("-x", "--extract", metavar="ALIAS", dest="extract_alias", help="Extract the relevant key and/or certificates for the given alias and print them in the PEM format.")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    options = jksread.Options(default_password=args.keystore_password,
                              skip_verify=args.skip_verify,
                              per_alias_passwords=dict(args.key_password))

    with open(args.keystore_file, 'rb') as f:
        data = f.read()
    log.debug("read %d bytes from %s", len(data), args.keystore_file)

    try:
        ks = jksread.KeyStore.loads(data, options)
        if not options.skip_verify:
            ks.verify_integrity(data)
    except jksread.KeystoreException as e:
        log.error("%s: %s", args.keystore_file, e)
        return 1
    log.debug("loaded %r", ks)

    if args.extract_alias:
        entry = ks.get(args.extract_alias)
        if entry is None:
            log.error("no entry with alias '%s'", args.extract_alias)
            return 1
        try:
            print(get_entry_bits(ks, entry))
        except jksread.KeystoreException as e:
            log.error("%s; pass its password with --key-password %s=... if it differs from the store password", e, entry.alias)
            return 1

    elif args.list:
        for entry in ks.entries:
            print(get_entry_metadata(ks, entry))
    return 0

if __name__ == "__main__":
    sys.exit(main())
