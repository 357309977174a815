import pytest

from ferreteria.number_words import amount_in_words, integer_to_words


_SMALL = {
    "un": 1, "uno": 1, "dos": 2, "tres": 3, "cuatro": 4, "cinco": 5, "seis": 6, "siete": 7,
    "ocho": 8, "nueve": 9, "diez": 10, "once": 11, "doce": 12, "trece": 13, "catorce": 14,
    "quince": 15, "dieciséis": 16, "diecisiete": 17, "dieciocho": 18, "diecinueve": 19,
    "veinte": 20, "veintiún": 21, "veintiuno": 21, "veintidós": 22, "veintitrés": 23, "veinticuatro": 24,
    "veinticinco": 25, "veintiséis": 26, "veintisiete": 27, "veintiocho": 28, "veintinueve": 29,
    "treinta": 30, "cuarenta": 40, "cincuenta": 50, "sesenta": 60,
    "setenta": 70, "ochenta": 80, "noventa": 90, "cien": 100, "ciento": 100,
    "doscientos": 200, "trescientos": 300, "cuatrocientos": 400, "quinientos": 500,
    "seiscientos": 600, "setecientos": 700, "ochocientos": 800, "novecientos": 900,
}


def words_to_int(text: str) -> int:
    """Reads back the Spanish numerals produced by integer_to_words."""
    tokens = text.split()
    sign = 1
    if tokens[0] == "menos":
        sign, tokens = -1, tokens[1:]
    if tokens == ["cero"]:
        return 0

    total = 0
    group = 0
    for tok in tokens:
        if tok == "y":
            continue
        if tok in _SMALL:
            group += _SMALL[tok]
        elif tok == "mil":
            group = (group or 1) * 1000
        elif tok in ("millón", "millones"):
            total += group * 1_000_000
            group = 0
        else:
            raise AssertionError(f"unexpected token {tok!r} in {text!r}")
    return sign * (total + group)


@pytest.mark.parametrize("n,expected", [
    (0, "cero"),
    (1, "uno"),
    (15, "quince"),
    (16, "dieciséis"),
    (20, "veinte"),
    (21, "veintiuno"),
    (22, "veintidós"),
    (23, "veintitrés"),
    (26, "veintiséis"),
    (30, "treinta"),
    (31, "treinta y uno"),
    (99, "noventa y nueve"),
    (100, "cien"),
    (101, "ciento uno"),
    (200, "doscientos"),
    (555, "quinientos cincuenta y cinco"),
    (1000, "mil"),
    (1001, "mil uno"),
    (2000, "dos mil"),
    (21000, "veintiún mil"),
    (31000, "treinta y un mil"),
    (101000, "ciento un mil"),
    (121000, "ciento veintiún mil"),
    (100000, "cien mil"),
    (1_000_000, "un millón"),
    (2_000_000, "dos millones"),
    (21_000_000, "veintiún millones"),
    (201_000_000, "doscientos un millones"),
    (1_001_000_000, "mil un millones"),
    (1_234_567, "un millón doscientos treinta y cuatro mil quinientos sesenta y siete"),
    (-5, "menos cinco"),
])
def test_integer_to_words_examples(n, expected):
    assert integer_to_words(n) == expected


def test_uno_keeps_its_full_form_when_it_ends_the_number():
    assert integer_to_words(21_021) == "veintiún mil veintiuno"
    assert integer_to_words(1_000_001) == "un millón uno"


def test_trillion_and_above_falls_back_to_digits():
    assert integer_to_words(10 ** 12) == "1000000000000"


@pytest.mark.parametrize("n", list(range(0, 1200)) + [
    1999, 20_020, 21_000, 99_999, 121_000, 100_001, 999_999, 1_000_001, 7_654_321, 21_021_021, 120_000_000, 201_000_000, 999_999_999_999,
])
def test_words_read_back_to_the_same_number(n):
    assert words_to_int(integer_to_words(n)) == n
    assert words_to_int(integer_to_words(-n)) == -n


@pytest.mark.parametrize("cents,expected", [
    (30000, "trescientos con 00/100"),
    (2150, "veintiuno con 50/100"),
    (2_100_000, "veintiún mil con 00/100"),
    (100000000, "un millón con 00/100"),
    (5, "cero con 05/100"),
    (-150, "menos uno con 50/100"),
])
def test_amount_in_words(cents, expected):
    assert amount_in_words(cents) == expected
