import string

from quizora.core import security
from quizora.services.account_security import validate_password_strength


def test_hash_and_verify_success():
    pw = "correct horse battery staple"
    hashed = security.hash_password(pw)
    assert isinstance(hashed, str)
    assert hashed != pw
    # verify should return True for correct password
    assert security.verify_password(pw, hashed) is True


def test_verify_wrong_password():
    hashed = security.hash_password("shortpw")
    # wrong candidate must fail
    assert security.verify_password("not-the-right-one", hashed) is False


def test_long_passwords_are_not_truncated():
    base = "x" * 100
    hashed = security.hash_password(base + "a")
    assert security.verify_password(base + "b", hashed) is False


def test_verify_against_missing_or_malformed_hash():
    assert security.verify_password("anything", "") is False
    assert security.verify_password("anything", "not-a-bcrypt-hash") is False


def test_same_password_hashes_differently():
    assert security.hash_password("repeat") != security.hash_password("repeat")


def test_numeric_code_shape():
    code = security.generate_numeric_code()
    assert len(code) == 6
    assert code.isdigit()


def test_code_store_form_hides_plain_code():
    stored = security.hash_code("123456")
    assert "123456" not in stored
    assert security.verify_code("123456", stored) is True
    assert security.verify_code("654321", stored) is False
    assert security.verify_code("123456", "garbage") is False


def test_generated_password_covers_every_class():
    pw = security.generate_random_password()
    assert len(pw) == 12
    assert any(c in string.ascii_lowercase for c in pw)
    assert any(c in string.ascii_uppercase for c in pw)
    assert any(c in string.digits for c in pw)
    assert validate_password_strength(pw)["isValid"] is True


def test_password_strength_levels():
    weak = validate_password_strength("abc")
    assert weak["isValid"] is False
    assert weak["strength"] == "weak"
    assert weak["checks"]["length"] is False

    strong = validate_password_strength("Sup3r$ecretPass")
    assert strong["isValid"] is True
    assert strong["strength"] == "strong"
