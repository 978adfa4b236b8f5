import pytest

from lockbox.security.kdf import (
    MAX_MEMORY_COST,
    MAX_PARALLELISM,
    MAX_TIME_COST,
    KdfParams,
    MasterKey,
    check_verifier,
    derive_from_params,
    derive_master_key,
    generate_salt,
    kdf_params_from_dict,
    kdf_params_to_dict,
    make_verifier,
)


def test_generate_salt_is_random():
    a = generate_salt()
    b = generate_salt()
    assert len(a) == 16
    assert a != b
    assert len(generate_salt(32)) == 32


def test_derive_master_key_deterministic(fast_params):
    k1 = derive_from_params(b"password", fast_params)
    k2 = derive_from_params("password", fast_params)
    assert k1 == k2
    assert len(k1) == 32


def test_derive_master_key_depends_on_salt_and_password(fast_kdf):
    p1, p2 = fast_kdf.with_new_salt(), fast_kdf.with_new_salt()
    assert derive_from_params("pw", p1) != derive_from_params("pw", p2)
    assert derive_from_params("pw", p1) != derive_from_params("pw2", p1)


def test_derive_master_key_key_len():
    key = derive_master_key(b"pw", b"s" * 16, time_cost=1, memory_cost=8, key_len=16)
    assert len(key) == 16


def test_with_new_salt_keeps_costs(fast_kdf):
    params = fast_kdf.with_new_salt()
    assert params.salt and params.salt != fast_kdf.salt
    assert (params.time_cost, params.memory_cost, params.parallelism) == (1, 8, 1)


# ==============================================================================
# Verifier
# ==============================================================================

def test_verifier_roundtrip():
    key = b"k" * 32
    digest = make_verifier(key)
    assert len(digest) == 64
    assert check_verifier(key, digest)
    assert not check_verifier(b"j" * 32, digest)
    assert not check_verifier(key, "")


# ==============================================================================
# MasterKey
# ==============================================================================

def test_master_key_derive_and_wipe(fast_params):
    mk = MasterKey.derive("password", fast_params)
    assert mk.params is fast_params
    assert check_verifier(mk.key, mk.verifier)
    assert not mk.wiped

    buffer = mk._key
    mk.wipe()
    assert mk.wiped
    assert all(b == 0 for b in buffer)
    assert mk.verifier == ""
    with pytest.raises(RuntimeError):
        _ = mk.key


def test_master_key_repr_hides_key(fast_params):
    mk = MasterKey(b"\x01" * 32, fast_params)
    assert "\\x01" not in repr(mk)
    assert repr(mk) == "MasterKey(wiped=False)"


# ==============================================================================
# Serialized parameters
# ==============================================================================

def test_params_dict_roundtrip():
    data = kdf_params_to_dict(b"\x00\xff" * 8, 2, 1024, 2)
    assert data["algo"] == "argon2id"
    assert data["salt"] == "00ff" * 8
    params = kdf_params_from_dict(data)
    assert params == KdfParams(salt=b"\x00\xff" * 8, time_cost=2, memory_cost=1024, parallelism=2)


def test_params_from_dict_rejects_unknown_algorithm():
    with pytest.raises(ValueError, match="Unsupported"):
        kdf_params_from_dict({"algo": "scrypt", "salt": "00"})


def test_params_from_dict_requires_salt():
    with pytest.raises(KeyError):
        kdf_params_from_dict({"algo": "argon2id"})


@pytest.mark.parametrize(
    "overrides",
    [
        {"time": 0},
        {"time": 1000},
        {"parallelism": 0},
        {"parallelism": 64},
        {"memory": 4},
        # 64 GiB
        {"memory": 64 * 1024 * 1024},
    ],
)
def test_params_from_dict_rejects_out_of_range_costs(overrides):
    data = kdf_params_to_dict(b"\x01" * 16, 1, 1024, 1)
    data.update(overrides)
    with pytest.raises(ValueError, match="out of range"):
        kdf_params_from_dict(data)


def test_params_from_dict_accepts_upper_bounds():
    data = kdf_params_to_dict(b"\x01" * 16, MAX_TIME_COST, MAX_MEMORY_COST, MAX_PARALLELISM)
    params = kdf_params_from_dict(data)
    assert params.memory_cost == MAX_MEMORY_COST
