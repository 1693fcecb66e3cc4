from misinfo_guard.safety import DOSAGE_REDACTION, detect_red_flags, filter_dosage


def test_detect_red_flags_in_keyword_order() -> None:
    text = "Sudden numbness and slurred speech are signs of a stroke."
    assert detect_red_flags(text) == ["stroke", "sudden numbness", "slurred speech"]


def test_detect_red_flags_normalizes_quotes() -> None:
    assert detect_red_flags("I can’t breathe after the jab") == ["can't breathe"]
    assert detect_red_flags("Vitamin C helps with colds") == []


def test_filter_dosage_redacts_amounts() -> None:
    assert filter_dosage("Take 500mg twice") == f"{DOSAGE_REDACTION} twice"
    assert filter_dosage("Use 10 mg per day") == f"Use {DOSAGE_REDACTION}"
    assert filter_dosage("Rest and drink fluids.") == "Rest and drink fluids."
