from backend.possync.validation import normalize_name, normalize_role


def test_normalize_role_accepts_supported_values():
    assert normalize_role("user") == "user"
    assert normalize_role(" ADMIN ") == "admin"


def test_normalize_role_rejects_invalid_or_empty_values():
    assert normalize_role("") is None
    assert normalize_role(None) is None
    assert normalize_role("cashier") is None


def test_normalize_name_strips_and_drops_blank():
    assert normalize_name("  Abebe ") == "Abebe"
    assert normalize_name("   ") is None
    assert normalize_name(None) is None
