# Overview: Spanish amount-in-words rendering for sale totals and invoices.

from __future__ import annotations

_UNITS = (
    "", "uno", "dos", "tres", "cuatro", "cinco", "seis", "siete", "ocho", "nueve",
    "diez", "once", "doce", "trece", "catorce", "quince", "dieciséis", "diecisiete",
    "dieciocho", "diecinueve",
)
_VEINTI = (
    "veinte", "veintiuno", "veintidós", "veintitrés", "veinticuatro", "veinticinco",
    "veintiséis", "veintisiete", "veintiocho", "veintinueve",
)
_TENS = ("", "diez", "veinte", "treinta", "cuarenta", "cincuenta", "sesenta", "setenta", "ochenta", "noventa")
_HUNDREDS = (
    "", "ciento", "doscientos", "trescientos", "cuatrocientos", "quinientos",
    "seiscientos", "setecientos", "ochocientos", "novecientos",
)


def _multiplier(n: int) -> str:
    # "uno" shortens before a noun: veintiún mil, ciento un millones
    words = integer_to_words(n)
    if words.endswith("uno"):
        return words[:-3] + ("ún" if words.endswith("veintiuno") else "un")
    return words


def integer_to_words(n: int) -> str:
    """
    Spell out an integer in Spanish.

    Groups of hundreds, thousands and millions are built recursively.
    Values of a trillion or more fall back to digits.
    """
    if n == 0:
        return "cero"
    if n < 0:
        return "menos " + integer_to_words(-n)

    if n < 20:
        return _UNITS[n]
    if n < 100:
        tens, rest = divmod(n, 10)
        if n < 30:
            return _VEINTI[rest]
        return _TENS[tens] + (" y " + _UNITS[rest] if rest else "")
    if n < 1000:
        hundreds, rest = divmod(n, 100)
        if n == 100:
            return "cien"
        return _HUNDREDS[hundreds] + (" " + integer_to_words(rest) if rest else "")
    if n < 1_000_000:
        thousands, rest = divmod(n, 1000)
        prefix = "mil" if thousands == 1 else _multiplier(thousands) + " mil"
        return prefix + (" " + integer_to_words(rest) if rest else "")
    if n < 1_000_000_000_000:
        millions, rest = divmod(n, 1_000_000)
        prefix = "un millón" if millions == 1 else _multiplier(millions) + " millones"
        return prefix + (" " + integer_to_words(rest) if rest else "")
    return str(n)


def amount_in_words(amount_cents: int) -> str:
    """
    Render a money amount as "<words> con NN/100".

    >>> amount_in_words(2150)
    'veintiuno con 50/100'
    """
    whole, cents = divmod(abs(int(amount_cents)), 100)
    if amount_cents < 0:
        whole = -whole
    return f"{integer_to_words(whole)} con {cents:02d}/100"
