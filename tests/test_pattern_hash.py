from services.pattern_hash import pattern_hash


def test_known_fnv1a_vectors():
    assert pattern_hash("") == 2166136261
    assert pattern_hash("a") == 0xE40C292C
    assert pattern_hash("foobar") == 0xBF9CF968


def test_is_deterministic_and_unsigned_32_bit():
    seed = "mt-1:2025-03-03:1"
    assert pattern_hash(seed) == pattern_hash(seed)
    assert 0 <= pattern_hash(seed) < 2**32
    assert pattern_hash(seed) != pattern_hash("mt-1:2025-03-03:2")


def test_astral_characters_hash_as_surrogate_pairs():
    # U+1F600 is the UTF-16 pair D83D DE00
    assert pattern_hash("\U0001F600") == pattern_hash("\ud83d\ude00")
