import pytest

from golava.hashing import (
    Argon2idHasher,
    Argon2idParams,
    BcryptHasher,
    HasherManager,
    UnknownHasherError,
)

ARGON2ID_HASH = "$argon2id$v=19$m=16,t=2,p=1$YTRZaXdqMk11Sms2Q0JQVA$J1Gjx8w3gE4nUxnpneoskA"
BCRYPT_HASH = "$2a$12$Ptw9MMriOubANO6wRQR.quFZs0iD7yBDbONrTMJwB4p3s60oTlqFe"

SMALL_PARAMS = Argon2idParams(memory=64, iterations=1, parallelism=1)


def test_argon2id_make():
    hasher = Argon2idHasher(Argon2idParams())
    hashed = hasher.make("password")
    assert hashed.startswith("$argon2id$v=19$m=65536,t=1,p=2$")
    assert hasher.check("password", hashed) is True


def test_argon2id_check():
    assert Argon2idHasher(Argon2idParams()).check("password", ARGON2ID_HASH) is True


def test_argon2id_check_wrong_value():
    assert Argon2idHasher().check("wrong", ARGON2ID_HASH) is False


def test_argon2id_make_uses_random_salt():
    hasher = Argon2idHasher(SMALL_PARAMS)
    hashes = [hasher.make("password") for _ in range(3)]
    assert len(set(hashes)) == 3
    assert [hasher.check("password", hashed) for hashed in hashes] == [True, True, True]


def test_argon2id_check_rejects_malformed_hash():
    with pytest.raises(ValueError):
        Argon2idHasher().check("password", "$argon2id$v=19$m=16")


def test_argon2id_check_rejects_other_version():
    bad = ARGON2ID_HASH.replace("v=19", "v=16")
    with pytest.raises(ValueError):
        Argon2idHasher().check("password", bad)


def test_argon2id_needs_rehash():
    hasher = Argon2idHasher()
    assert hasher.needs_rehash(ARGON2ID_HASH) is False
    assert hasher.needs_rehash(BCRYPT_HASH) is True


def test_bcrypt_make():
    hasher = BcryptHasher(cost=10)
    hashed = hasher.make("password")
    assert hashed.startswith("$2a$10$")
    assert hasher.check("password", hashed) is True
    assert hasher.check("wrong", hashed) is False


def test_bcrypt_check():
    assert BcryptHasher(cost=12).check("password", BCRYPT_HASH) is True


def test_bcrypt_check_rejects_malformed_hash():
    with pytest.raises(ValueError):
        BcryptHasher().check("password", "not a hash")


def test_bcrypt_make_rejects_long_value():
    with pytest.raises(ValueError):
        BcryptHasher(cost=4).make("x" * 73)


def test_bcrypt_needs_rehash():
    assert BcryptHasher(cost=12).needs_rehash(BCRYPT_HASH) is False
    assert BcryptHasher(cost=10).needs_rehash(BCRYPT_HASH) is True
    assert BcryptHasher(cost=12).needs_rehash(ARGON2ID_HASH) is True


def test_identify_hasher():
    manager = HasherManager()
    assert manager.identify_hasher(ARGON2ID_HASH) == "argon2id"
    assert manager.identify_hasher(BCRYPT_HASH) == "bcrypt"


def test_identify_hasher_unknown():
    manager = HasherManager()
    assert manager.identify_hasher("plain") is None
    assert manager.identify_hasher("$md5$abc") is None


def test_manager_make_uses_default_hasher():
    manager = HasherManager(hashers={"argon2id": Argon2idHasher(SMALL_PARAMS)})
    hashed = manager.make("password")
    assert manager.identify_hasher(hashed) == "argon2id"
    assert manager.check("password", hashed) is True
    assert manager.needs_rehash(hashed) is False


def test_manager_check_bcrypt():
    assert HasherManager().check("password", BCRYPT_HASH) is True


def test_manager_check_unknown_hasher():
    with pytest.raises(UnknownHasherError):
        HasherManager().check("password", "$md5$abc")


def test_manager_bcrypt_is_deprecated():
    assert HasherManager().needs_rehash(BCRYPT_HASH) is True


def test_manager_needs_rehash_unknown_hasher():
    with pytest.raises(UnknownHasherError):
        HasherManager().needs_rehash("plain")