import random
import re

import pytest

from codedrop.codes import CodeGenerator


def test_default_codes_are_six_digits():
    generator = CodeGenerator()
    for _ in range(200):
        code = generator.generate()
        assert re.fullmatch(r"[0-9]{6}", code)
        assert 100000 <= int(code) <= 999999


def test_injected_rng_is_deterministic():
    first = CodeGenerator(rng=random.Random(42))
    second = CodeGenerator(rng=random.Random(42))

    assert [first.generate() for _ in range(5)] == [second.generate() for _ in range(5)]


def test_custom_length():
    code = CodeGenerator(length=4, rng=random.Random(1)).generate()
    assert len(code) == 4 and code[0] != "0"


def test_rejects_non_positive_length():
    with pytest.raises(ValueError):
        CodeGenerator(length=0)
